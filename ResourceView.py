import numpy as np

DIMENSIONS = ('cpu', 'ram', 'bw', 'storage')

# Defaults for snapshots built from counts only
DEFAULT_HOST_SPEC = {'cpu': 4000.0, 'ram': 16384.0, 'bw': 10000.0, 'storage': 1000000.0,
                     'power_idle': 86.0, 'power_max': 117.0}
DEFAULT_VM_SPEC = {'cpu': 1000.0, 'ram': 2048.0, 'bw': 1000.0, 'storage': 10000.0}


def _frozen(values, size, name):
    arr = np.array(values, dtype=float).reshape(-1)
    if arr.shape[0] != size:
        raise ValueError(f'"{name}" has {arr.shape[0]} entries, expected {size}')
    arr.setflags(write=False)
    return arr


class ResourceSnapshot:
    """
    Read-only view of host capacity and VM demand at one instant.
    Every array is indexed by position; host_ids / vm_ids keep the caller's ordering.
    """
    def __init__(self, host_caps, vm_demands, host_used=None, host_ids=None, vm_ids=None,
                 power_idle=None, power_max=None):
        n_hosts = len(np.asarray(host_caps['cpu']).reshape(-1))
        n_vms = len(np.asarray(vm_demands['cpu']).reshape(-1))

        self.caps = {}
        self.demand = {}
        self.used = {}
        for d in DIMENSIONS:
            self.caps[d] = _frozen(host_caps.get(d, np.zeros(n_hosts)), n_hosts, f'host {d}')
            self.demand[d] = _frozen(vm_demands.get(d, np.zeros(n_vms)), n_vms, f'vm {d}')
            used = np.zeros(n_hosts) if host_used is None else host_used.get(d, np.zeros(n_hosts))
            self.used[d] = _frozen(used, n_hosts, f'host used {d}')

        self.host_ids = list(range(n_hosts)) if host_ids is None else list(host_ids)
        self.vm_ids = list(range(n_vms)) if vm_ids is None else list(vm_ids)
        if len(self.host_ids) != n_hosts or len(self.vm_ids) != n_vms:
            raise ValueError('host_ids / vm_ids do not match the resource arrays')

        idle = np.full(n_hosts, DEFAULT_HOST_SPEC['power_idle']) if power_idle is None else power_idle
        peak = np.full(n_hosts, DEFAULT_HOST_SPEC['power_max']) if power_max is None else power_max
        self.power_idle = _frozen(idle, n_hosts, 'power_idle')
        self.power_max = _frozen(peak, n_hosts, 'power_max')

        # Capacity used as a divisor (avoid division by zero)
        self.safe_caps = {}
        for d in DIMENSIONS:
            safe = np.where(self.caps[d] == 0, 1.0, self.caps[d])
            safe.setflags(write=False)
            self.safe_caps[d] = safe

        self._suitable = self._build_suitability()

    @property
    def vm_count(self):
        return len(self.vm_ids)

    @property
    def host_count(self):
        return len(self.host_ids)

    def _build_suitability(self):
        fits = np.ones((self.vm_count, self.host_count), dtype=bool)
        for d in DIMENSIONS:
            free = self.caps[d] - self.used[d]
            fits &= self.demand[d][:, None] <= free[None, :]
        fits.setflags(write=False)
        return fits

    # --------------------------------------------
    # Per-entity accessors
    # --------------------------------------------
    def capacity(self, host):
        return {d: float(self.caps[d][host]) for d in DIMENSIONS}

    def available(self, host):
        return {d: float(self.caps[d][host] - self.used[d][host]) for d in DIMENSIONS}

    def requirement(self, vm):
        return {d: float(self.demand[d][vm]) for d in DIMENSIONS}

    def current_utilization(self, host):
        """Background utilization of a host in percent"""
        return {
            'cpu_percent': 100.0 * self.used['cpu'][host] / self.safe_caps['cpu'][host],
            'ram_percent': 100.0 * self.used['ram'][host] / self.safe_caps['ram'][host],
        }

    def is_suitable(self, vm, host):
        return bool(self._suitable[vm, host])

    def suitability_matrix(self):
        return self._suitable

    def suitable_hosts(self, vm):
        return np.flatnonzero(self._suitable[vm])

    # --------------------------------------------
    # Factories
    # --------------------------------------------
    @classmethod
    def from_specs(cls, hosts, vms):
        """
        Build a snapshot from lists of dicts, e.g.
        hosts = [{'id': 'h0', 'cpu': 4000, 'ram': 16384, 'cpu_used': 400, 'power_idle': 86}, ...]
        vms = [{'id': 'vm0', 'cpu': 500, 'ram': 1024}, ...]
        """
        host_caps = {d: [float(h.get(d, 0.0)) for h in hosts] for d in DIMENSIONS}
        host_used = {d: [float(h.get(f'{d}_used', 0.0)) for h in hosts] for d in DIMENSIONS}
        vm_demands = {d: [float(v.get(d, 0.0)) for v in vms] for d in DIMENSIONS}
        return cls(
            host_caps, vm_demands, host_used=host_used,
            host_ids=[h.get('id', i) for i, h in enumerate(hosts)],
            vm_ids=[v.get('id', i) for i, v in enumerate(vms)],
            power_idle=[float(h.get('power_idle', DEFAULT_HOST_SPEC['power_idle'])) for h in hosts],
            power_max=[float(h.get('power_max', DEFAULT_HOST_SPEC['power_max'])) for h in hosts],
        )

    @classmethod
    def uniform(cls, vm_count, host_count, host_spec=None, vm_spec=None):
        """Homogeneous cluster: identical hosts, identical VMs"""
        h = dict(DEFAULT_HOST_SPEC, **(host_spec or {}))
        v = dict(DEFAULT_VM_SPEC, **(vm_spec or {}))
        return cls.from_specs([dict(h) for _ in range(host_count)],
                              [dict(v) for _ in range(vm_count)])

    def __repr__(self):
        return f'ResourceSnapshot(vms={self.vm_count}, hosts={self.host_count})'
