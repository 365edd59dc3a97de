import numpy as np

from VariationStrategy import VariationStrategy
from VmpIndividual import VmpIndividual
from VmpPopulation import VmpPopulation

MIN_STEP = 0.1


class TerritorialStrategy(VariationStrategy):
    """
    Hippopotamus-style search. Each candidate moves, VM by VM, toward the
    best-known placement, toward a random territory exemplar, or around the
    best-known placement, with a step that shrinks over the run.
    """
    name = 'territorial'
    convergence_window = 10

    def __init__(self, resources, params):
        super().__init__(resources, params)
        self.iteration = 0

    def initialize(self, vm_count, host_count, rng):
        pop = VmpPopulation()
        for i in range(self.params.population_size):
            if i == 0:
                assignment = self.sequential_assignment()
            elif i == 1:
                assignment = self.balanced_assignment()
            else:
                assignment = self.random_assignment(rng)
            pop.append(VmpIndividual(assignment))
        return pop

    def step_size(self):
        t = self.iteration / self.params.max_iterations
        return max(MIN_STEP, 2.0 * (1.0 - t))

    def move(self, current, best, exemplar, step, rng):
        r1, r2, r3 = rng.random((3, len(current)))
        toward_best = current + r3 * step * (best - current)
        toward_exemplar = current + r3 * step * (exemplar - current)
        around_best = best + r3 * step * (2.0 * r2 - 1.0)

        target = np.where(r1 < 0.5, np.where(r2 < 0.5, toward_best, toward_exemplar), around_best)
        target = np.trunc(target).astype(int)
        return np.clip(target, 0, self.resources.host_count - 1)

    def next_generation(self, population, fitness_fn, rng):
        step = self.step_size()
        self.iteration += 1
        best = self.repair(population.best_ever.assignment)

        herd = []
        for hippo in population:
            current = self.repair(hippo.assignment)
            exemplar = self.repair(population.random_member(rng).assignment)
            trial = VmpIndividual(self.move(current, best, exemplar, step, rng))

            if self.params.territorial_greedy and fitness_fn is not None:
                trial.set_fitness(*fitness_fn(trial.assignment))
                # Defend the territory: keep the old position unless the move is no worse
                if trial.fitness > hippo.fitness:
                    trial = hippo.copy()
            herd.append(trial)

        return population.successor(herd)
