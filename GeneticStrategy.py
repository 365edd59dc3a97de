from VariationStrategy import VariationStrategy, greedy_assignment
from VmpIndividual import VmpIndividual
from VmpPopulation import VmpPopulation


class GeneticStrategy(VariationStrategy):
    """
    Tournament selection, single-point crossover, per-gene mutation
    onto a suitable host, elitism.
    """
    name = 'genetic'
    convergence_window = 10

    def initialize(self, vm_count, host_count, rng):
        pop = VmpPopulation()
        # SEEDING
        if self.params.seed_greedy:
            pop.append(VmpIndividual(greedy_assignment(self.resources)))
        # Fill remaining population
        while len(pop) < self.params.population_size:
            pop.append(VmpIndividual(self.random_feasible_assignment(rng)))
        return pop

    @property
    def tournament_size(self):
        return max(2, self.params.population_size // 10)

    def crossover(self, p1, p2, rng):
        """
        Single-point crossover. p1 and p2 are already private copies, so they
        are returned verbatim (keeping their fitness) when no crossover happens.
        """
        n = len(p1.assignment)
        if n < 2 or rng.random() >= self.params.crossover_rate:
            return p1, p2
        cut = int(rng.integers(1, n))
        c1 = p1.assignment.copy()
        c2 = p2.assignment.copy()
        c1[cut:], c2[cut:] = p2.assignment[cut:], p1.assignment[cut:]
        return VmpIndividual(c1), VmpIndividual(c2)

    def mutate(self, ind, rng):
        """Per-gene mutation onto a uniformly random suitable host"""
        genes = rng.random(len(ind.assignment)) < self.params.mutation_rate
        for vm in genes.nonzero()[0]:
            ind.assignment[vm] = self.random_feasible_host(vm, rng)
        if genes.any():
            ind.invalidate()

    def next_generation(self, population, fitness_fn, rng):
        size = self.params.population_size
        elite_n = min(self.params.elitism_count, len(population))
        next_gen = population.elites(elite_n)

        while len(next_gen) < size:
            p1 = population.tournament(self.tournament_size, rng)
            p2 = population.tournament(self.tournament_size, rng)
            c1, c2 = self.crossover(p1, p2, rng)
            self.mutate(c1, rng)
            self.mutate(c2, rng)
            next_gen.append(c1)
            if len(next_gen) < size:
                next_gen.append(c2)

        return population.successor(next_gen)
