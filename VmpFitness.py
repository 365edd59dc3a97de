from dataclasses import dataclass, asdict, fields

import numpy as np

from ResourceView import DIMENSIONS

BALANCE_DIMENSIONS = ('cpu', 'ram', 'bw')
OBJECTIVES = ('balance', 'infeasibility', 'unused_hosts', 'power', 'sla')


@dataclass(frozen=True)
class ObjectiveWeights:
    """Weights of the combined fitness. They need not sum to 1."""
    balance: float = 0.4
    infeasibility: float = 0.3
    unused_hosts: float = 0.2
    power: float = 0.1
    sla: float = 0.0
    penalty_coefficient: float = 10.0
    sla_threshold: float = 0.8

    def validate(self):
        for name, value in asdict(self).items():
            if not value >= 0:
                raise ValueError(f'weight "{name}" must be non-negative, got {value}')
        # A zero penalty would let overloaded placements tie with feasible ones
        if self.infeasibility <= 0 or self.penalty_coefficient <= 0:
            raise ValueError('infeasibility weight and penalty_coefficient must be positive')
        if not 0 < self.sla_threshold <= 1:
            raise ValueError(f'sla_threshold must lie in (0, 1], got {self.sla_threshold}')

    def normalized(self):
        total = sum(getattr(self, name) for name in OBJECTIVES)
        if total <= 0:
            return self
        scaled = {name: getattr(self, name) / total for name in OBJECTIVES}
        return ObjectiveWeights(penalty_coefficient=self.penalty_coefficient,
                                sla_threshold=self.sla_threshold, **scaled)

    def to_dict(self):
        return asdict(self)

    @classmethod
    def from_dict(cls, values):
        known = {f.name for f in fields(cls)}
        unknown = set(values) - known
        if unknown:
            raise ValueError(f'unknown weight(s): {", ".join(sorted(unknown))}')
        return cls(**{k: float(v) for k, v in values.items()})


def host_loads(assignment, resources):
    """
    Aggregate load per host (background + placed VMs) for every dimension.
    Entries outside [0, host_count) are treated as unassigned.
    Returns (loads, vm_counts, n_unassigned).
    """
    assignment = np.asarray(assignment, dtype=int)
    n_hosts = resources.host_count
    placed = (assignment >= 0) & (assignment < n_hosts)
    hosts = assignment[placed]

    loads = {}
    for d in DIMENSIONS:
        loads[d] = resources.used[d] + np.bincount(
            hosts, weights=resources.demand[d][placed], minlength=n_hosts)
    vm_counts = np.bincount(hosts, minlength=n_hosts)
    return loads, vm_counts, int(np.count_nonzero(~placed))


def evaluate(assignment, resources, weights=None):
    """
    Score one assignment. Lower is better.
    Returns (fitness, feasible, breakdown); breakdown holds the weighted
    contribution of every objective and sums to fitness.
    """
    if weights is None:
        weights = ObjectiveWeights()
    assignment = np.asarray(assignment, dtype=int)
    loads, vm_counts, n_unassigned = host_loads(assignment, resources)
    n_hosts = resources.host_count

    # 1. Constraint violation, relative to capacity so dimensions are comparable
    overflow = float(n_unassigned)
    util = {}
    for d in DIMENSIONS:
        caps = resources.safe_caps[d]
        overflow += float(np.sum(np.maximum(0.0, loads[d] - resources.caps[d]) / caps))
        util[d] = np.clip(loads[d] / caps, 0.0, 1.0)
    feasible = overflow == 0.0

    # 2. Load balance: std of utilization, averaged over the balanced dimensions
    balance_dims = [d for d in BALANCE_DIMENSIONS if np.any(resources.caps[d] > 0)]
    balance = float(np.mean([np.std(util[d]) for d in balance_dims])) if balance_dims else 0.0

    # 3. Unused hosts
    unused = float(np.count_nonzero(vm_counts == 0)) / n_hosts

    # 4. Power: linear model over active hosts, normalised by cluster peak power
    active = vm_counts > 0
    draw = resources.power_idle + (resources.power_max - resources.power_idle) * util['cpu']
    peak = float(np.sum(resources.power_max))
    power = float(np.sum(draw[active])) / peak if peak > 0 else 0.0

    # 5. SLA risk: share of placed VMs on hosts running above the threshold
    hot = np.maximum(util['cpu'], util['ram']) > weights.sla_threshold
    n_placed = len(assignment) - n_unassigned
    sla = float(np.sum(vm_counts[hot])) / n_placed if n_placed else 0.0

    breakdown = {
        'balance': weights.balance * balance,
        'infeasibility': weights.infeasibility * overflow * weights.penalty_coefficient,
        'unused_hosts': weights.unused_hosts * unused,
        'power': weights.power * power,
        'sla': weights.sla * sla,
    }
    fitness = float(sum(breakdown.values()))
    return fitness, feasible, breakdown


def fitness_function(resources, weights=None):
    """Bind a snapshot and weights into a callable assignment -> (fitness, feasible, breakdown)"""
    def _fitness(assignment):
        return evaluate(assignment, resources, weights)
    return _fitness
