import numpy as np

from ResourceView import DIMENSIONS
from VmpIndividual import UNASSIGNED


class VariationStrategy:
    """
    Base class of the population search variants.
    A strategy builds the first generation and derives every next one;
    evaluation, best tracking and convergence live in the driver.
    """
    name = None
    convergence_window = 10

    def __init__(self, resources, params):
        self.resources = resources
        self.params = params
        self.suitable = resources.suitability_matrix()

    def initialize(self, vm_count, host_count, rng):
        """Return the first VmpPopulation"""
        raise NotImplementedError

    def next_generation(self, population, fitness_fn, rng):
        """
        Return the next VmpPopulation. `population` is fully evaluated;
        fitness_fn(assignment) -> (fitness, feasible, breakdown) is available
        for variants that score trial moves themselves.
        """
        raise NotImplementedError

    # --------------------------------------------
    # Assignment builders shared by the variants
    # --------------------------------------------
    def random_feasible_host(self, vm, rng):
        """Uniform over hosts that can take the VM, over all hosts when none can"""
        hosts = np.flatnonzero(self.suitable[vm])
        if len(hosts) == 0:
            return int(rng.integers(0, self.resources.host_count))
        return int(hosts[rng.integers(0, len(hosts))])

    def random_feasible_assignment(self, rng):
        return np.array([self.random_feasible_host(vm, rng)
                         for vm in range(self.resources.vm_count)], dtype=int)

    def random_assignment(self, rng):
        return rng.integers(0, self.resources.host_count, size=self.resources.vm_count)

    def sequential_assignment(self):
        """Round robin: VM i on host i mod host_count"""
        return np.arange(self.resources.vm_count) % self.resources.host_count

    def balanced_assignment(self):
        """Contiguous blocks of (almost) equal size per host"""
        n_vms, n_hosts = self.resources.vm_count, self.resources.host_count
        per_host, remainder = divmod(n_vms, n_hosts)
        sizes = [per_host + (1 if h < remainder else 0) for h in range(n_hosts)]
        return np.repeat(np.arange(n_hosts), sizes)

    def repair(self, assignment):
        """Put out-of-range genes back on a valid host (round robin position)"""
        assignment = np.asarray(assignment, dtype=int).copy()
        n_hosts = self.resources.host_count
        bad = (assignment < 0) | (assignment >= n_hosts)
        assignment[bad] = np.flatnonzero(bad) % n_hosts
        return assignment


# ---------------------------------------------------------
# Smart Greedy Algorithm
# ---------------------------------------------------------
def greedy_assignment(resources):
    """
    Smart Greedy Allocation Logic:
    1. Strategy A (Best Fit): Try to find a host where the VM FITS.
       If multiple hosts fit, choose the one with the most remaining resources (Balance).
    2. Strategy B (Least Bad): If NO host fits, find the host
       that results in the MINIMUM normalised overflow.
    """
    n_vms, n_hosts = resources.vm_count, resources.host_count
    assignment = np.full(n_vms, UNASSIGNED, dtype=int)
    if n_hosts == 0:
        return assignment

    # Temporary copies to track load during assignment
    load = {d: resources.used[d].copy() for d in DIMENSIONS}

    for i in range(n_vms):
        remaining = {d: resources.caps[d] - load[d] - resources.demand[d][i] for d in DIMENSIONS}
        fits = np.all([remaining[d] >= 0 for d in DIMENSIONS], axis=0)

        if np.any(fits):
            # --- Strategy A: most normalised headroom after placement ---
            score = sum(remaining[d] / resources.safe_caps[d] for d in DIMENSIONS)
            score = np.where(fits, score, -np.inf)
        else:
            # --- Strategy B: least normalised overflow ---
            score = -sum(np.maximum(0.0, -remaining[d]) / resources.safe_caps[d] for d in DIMENSIONS)

        best_h = int(np.argmax(score))
        assignment[i] = best_h
        # Update load immediately for the next VM
        for d in DIMENSIONS:
            load[d][best_h] += resources.demand[d][i]

    return assignment
