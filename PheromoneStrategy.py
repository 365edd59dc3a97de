import numpy as np

from ResourceView import DIMENSIONS
from VariationStrategy import VariationStrategy
from VmpIndividual import VmpIndividual
from VmpPopulation import VmpPopulation

MIN_HEURISTIC = 0.1


class PheromoneMatrix:
    """vm x host trail levels, kept within [min_level, max_level]"""
    def __init__(self, vm_count, host_count, initial=0.1, min_level=0.001, max_level=10.0):
        self.min_level = min_level
        self.max_level = max_level
        self.levels = np.full((vm_count, host_count), float(initial))

    def evaporate(self, rho):
        self.levels *= (1.0 - rho)
        np.maximum(self.levels, self.min_level, out=self.levels)

    def deposit(self, assignment, amount):
        assignment = np.asarray(assignment, dtype=int)
        placed = (assignment >= 0) & (assignment < self.levels.shape[1])
        # one host per VM row, so no index repeats
        self.levels[placed.nonzero()[0], assignment[placed]] += amount

    def update(self, assignments, fitnesses, rho, q):
        """Evaporate, deposit q / (1 + fitness) per ant, then cap"""
        self.evaporate(rho)
        for assignment, fitness in zip(assignments, fitnesses):
            self.deposit(assignment, q / (1.0 + fitness))
        np.minimum(self.levels, self.max_level, out=self.levels)


class PheromoneStrategy(VariationStrategy):
    """
    ACO: every ant builds a full assignment VM by VM with roulette-wheel
    selection, P(host) ~ pheromone^alpha * heuristic^beta.
    """
    name = 'pheromone'
    convergence_window = 10

    def __init__(self, resources, params):
        super().__init__(resources, params)
        self.pheromone = None

    def heuristic(self, vm, load, hosts):
        """Headroom left on each candidate host after placing the VM"""
        res = self.resources
        worst = np.zeros(len(hosts))
        for d in DIMENSIONS:
            if not np.any(res.caps[d][hosts] > 0):
                continue
            projected = (load[d][hosts] + res.demand[d][vm]) / res.safe_caps[d][hosts]
            worst = np.maximum(worst, projected)
        return np.maximum(1.0 - worst, MIN_HEURISTIC)

    def construct_ant(self, rng):
        res = self.resources
        p = self.params
        load = {d: res.used[d].copy() for d in DIMENSIONS}
        all_hosts = np.arange(res.host_count)
        assignment = np.empty(res.vm_count, dtype=int)

        for vm in range(res.vm_count):
            fits = np.all([load[d] + res.demand[d][vm] <= res.caps[d] for d in DIMENSIONS], axis=0)
            hosts = fits.nonzero()[0]
            if len(hosts) == 0:
                hosts = self.suitable[vm].nonzero()[0]
            if len(hosts) == 0:
                hosts = all_hosts

            weight = (self.pheromone.levels[vm, hosts] ** p.alpha
                      * self.heuristic(vm, load, hosts) ** p.beta)
            total = weight.sum()
            if total > 0 and np.isfinite(total):
                probs = weight / total
            else:
                probs = np.full(len(hosts), 1.0 / len(hosts))
            host = int(hosts[rng.choice(len(hosts), p=probs)])

            assignment[vm] = host
            for d in DIMENSIONS:
                load[d][host] += res.demand[d][vm]
        return assignment

    def colony(self, rng):
        return [VmpIndividual(self.construct_ant(rng)) for _ in range(self.params.population_size)]

    def initialize(self, vm_count, host_count, rng):
        p = self.params
        self.pheromone = PheromoneMatrix(vm_count, host_count, p.initial_pheromone,
                                         p.min_pheromone, p.max_pheromone)
        return VmpPopulation(self.colony(rng))

    def next_generation(self, population, fitness_fn, rng):
        # All ants of this iteration are scored before the trail changes
        self.pheromone.update(population.assignments(), population.fitness_values(),
                              self.params.evaporation_rate, self.params.deposit_q)
        return population.successor(self.colony(rng))
