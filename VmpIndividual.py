from multiprocessing import Pool

import numpy as np

from VmpFitness import evaluate

UNASSIGNED = -1


class VmpIndividual:
    """
    Candidate VM placement
    Uses Integer Encoding: [Host_ID_for_VM_0, Host_ID_for_VM_1, ...]
    UNASSIGNED marks a VM that has no host.
    """
    # Static variables environment (set by init_worker)
    resources = None
    weights = None

    def __init__(self, assignment, position=None, velocity=None):
        self.assignment = np.array(assignment, dtype=int)

        self.fitness = None     # Combined score (lower is better)
        self.feasible = None    # No capacity overflow, no unassigned VM
        self.objectives = None  # Weighted breakdown per objective

        # Continuous state, only used by the swarm strategy
        self.position = None if position is None else np.array(position, dtype=float)
        self.velocity = None if velocity is None else np.array(velocity, dtype=float)
        self.best_position = None
        self.best_fitness = float('inf')

    def __len__(self):
        return len(self.assignment)

    def __repr__(self):
        return f'VmpIndividual(fitness={self.fitness}, feasible={self.feasible})'

    @property
    def is_evaluated(self):
        return self.fitness is not None

    def invalidate(self):
        """Reset metrics after the assignment changed"""
        self.fitness = None
        self.feasible = None
        self.objectives = None

    def set_fitness(self, fitness, feasible, objectives):
        self.fitness = fitness
        self.feasible = feasible
        self.objectives = objectives

    def calculate_objectives(self, resources, weights=None):
        fitness, feasible, objectives = evaluate(self.assignment, resources, weights)
        self.set_fitness(fitness, feasible, objectives)
        return fitness

    def copy(self):
        """Deep copy: parents and best-ever are never shared by reference"""
        other = VmpIndividual(self.assignment.copy(), self.position, self.velocity)
        other.fitness = self.fitness
        other.feasible = self.feasible
        other.objectives = None if self.objectives is None else dict(self.objectives)
        other.best_position = None if self.best_position is None else self.best_position.copy()
        other.best_fitness = self.best_fitness
        return other

    def hamming(self, other):
        """Fraction of VMs placed on different hosts"""
        if len(self.assignment) == 0:
            return 0.0
        return float(np.mean(self.assignment != other.assignment))

    def to_mapping(self, resources):
        """Decode into {vm_id: host_id}, skipping unassigned VMs"""
        mapping = {}
        for vm_idx, host_idx in enumerate(self.assignment):
            if 0 <= host_idx < resources.host_count:
                mapping[resources.vm_ids[vm_idx]] = resources.host_ids[host_idx]
        return mapping


# ---------------------------------------------------------
# Parallel fitness evaluation
# ---------------------------------------------------------
def init_worker(resources, weights):
    """
    Initialize static variables in worker processes for efficient parallel calculation.
    """
    VmpIndividual.resources = resources
    VmpIndividual.weights = weights


def make_pool(processes, resources, weights):
    pool = Pool(processes=processes, initializer=init_worker, initargs=(resources, weights))
    # Workers only know the snapshot they were started with
    pool.resources = resources
    pool.weights = weights
    return pool


def pool_matches(pool, resources, weights):
    """True when the pool workers score against this snapshot and these weights"""
    return getattr(pool, 'resources', None) is resources and getattr(pool, 'weights', None) == weights


class Worker:
    @classmethod
    def evaluateFitness(cls, assignment):
        return evaluate(assignment, VmpIndividual.resources, VmpIndividual.weights)
