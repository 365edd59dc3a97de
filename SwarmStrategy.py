import numpy as np

from VariationStrategy import VariationStrategy
from VmpIndividual import VmpIndividual
from VmpPopulation import VmpPopulation

VELOCITY_LIMIT = 2.0


class SwarmStrategy(VariationStrategy):
    """
    PSO over a continuous vm x host preference matrix.
    The discrete assignment is the per-VM argmax of the position.
    """
    name = 'swarm'
    convergence_window = 5

    def __init__(self, resources, params):
        super().__init__(resources, params)
        self.global_best_position = None
        self.global_best_fitness = float('inf')
        # VMs that no host can take fall back to the unmasked argmax
        self._no_fit = ~self.suitable.any(axis=1)

    def decode(self, position):
        """Argmax per VM, restricted to suitable hosts when there are any"""
        scores = np.where(self.suitable, position, -np.inf)
        scores[self._no_fit] = position[self._no_fit]
        return np.argmax(scores, axis=1)

    def initialize(self, vm_count, host_count, rng):
        pop = VmpPopulation()
        shape = (vm_count, host_count)
        for _ in range(self.params.population_size):
            position = rng.random(shape)
            velocity = rng.uniform(-1.0, 1.0, shape)
            pop.append(VmpIndividual(self.decode(position), position, velocity))
        return pop

    def update_bests(self, population):
        """Personal and global bests move only on strictly better fitness"""
        for particle in population:
            if particle.fitness < particle.best_fitness:
                particle.best_fitness = particle.fitness
                particle.best_position = particle.position.copy()
            if particle.fitness < self.global_best_fitness:
                self.global_best_fitness = particle.fitness
                self.global_best_position = particle.position.copy()

    def next_generation(self, population, fitness_fn, rng):
        self.update_bests(population)
        p = self.params

        swarm = []
        for particle in population:
            moved = particle.copy()
            x, v = moved.position, moved.velocity
            r1 = rng.random(x.shape)
            r2 = rng.random(x.shape)
            v = (p.inertia * v
                 + p.cognitive * r1 * (moved.best_position - x)
                 + p.social * r2 * (self.global_best_position - x))
            v = np.clip(v, -VELOCITY_LIMIT, VELOCITY_LIMIT)
            x = np.clip(x + v, 0.0, 1.0)

            moved.position, moved.velocity = x, v
            moved.assignment = self.decode(x)
            moved.invalidate()
            swarm.append(moved)

        return population.successor(swarm)
