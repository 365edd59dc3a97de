import numpy as np
from operator import attrgetter

from VmpIndividual import Worker, pool_matches
from VmpFitness import evaluate


class VmpPopulation:
    """
    One generation of candidates plus the best candidate ever observed.
    best_ever is a private copy, updated only on strict improvement.
    """
    def __init__(self, individuals=None):
        self.population = list(individuals) if individuals else []
        self.best_ever = None

    def __len__(self):
        return len(self.population)

    def __getitem__(self, key):
        return self.population[key]

    def __iter__(self):
        return iter(self.population)

    def append(self, ind):
        self.population.append(ind)

    def successor(self, individuals):
        """Next generation: new candidates, same best-ever"""
        nxt = VmpPopulation(individuals)
        nxt.best_ever = self.best_ever
        return nxt

    def assignments(self):
        return np.array([ind.assignment for ind in self.population], dtype=int)

    def fitness_values(self):
        return np.array([ind.fitness for ind in self.population], dtype=float)

    @property
    def best_fitness(self):
        return self.best_ever.fitness if self.best_ever is not None else float('inf')

    # --------------------------------------------
    # Fitness evaluation
    # --------------------------------------------
    def evaluateFitness(self, resources, weights, pool=None):
        """
        Evaluate stale candidates, in parallel with chunksize optimization when a pool is given.
        Returns the number of evaluations performed.
        """
        stale = [ind for ind in self.population if not ind.is_evaluated]
        if not stale:
            return 0
        assignments = [ind.assignment for ind in stale]

        if pool:
            if not pool_matches(pool, resources, weights):
                raise ValueError('pool was built for a different snapshot or weights, see make_pool')
            n_tasks = len(assignments)
            n_proc = pool._processes
            chunk = max(1, n_tasks // (n_proc * 4))
            results = pool.map(Worker.evaluateFitness, assignments, chunksize=chunk)
        else:
            results = [evaluate(a, resources, weights) for a in assignments]

        for ind, (fitness, feasible, objectives) in zip(stale, results):
            ind.set_fitness(fitness, feasible, objectives)
        return len(stale)

    # --------------------------------------------
    # Best tracking
    # --------------------------------------------
    def current_best(self):
        evaluated = [ind for ind in self.population if ind.is_evaluated]
        if not evaluated:
            return None
        return min(evaluated, key=attrgetter('fitness'))

    def update_best(self):
        """Copy the generation's best into best_ever on strict improvement"""
        best = self.current_best()
        if best is not None and best.fitness < self.best_fitness:
            self.best_ever = best.copy()
            return True
        return False

    # --------------------------------------------
    # Selection helpers
    # --------------------------------------------
    def tournament(self, k, rng):
        """k-way tournament, lowest fitness wins. Returns a copy of the winner."""
        competitors = rng.integers(0, len(self.population), size=k)
        winner = min((self.population[i] for i in competitors), key=attrgetter('fitness'))
        return winner.copy()

    def elites(self, n):
        ranked = sorted(self.population, key=attrgetter('fitness'))
        return [ind.copy() for ind in ranked[:n]]

    def random_member(self, rng):
        return self.population[int(rng.integers(0, len(self.population)))]
