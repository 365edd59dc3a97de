import yaml

from ResourceView import DIMENSIONS, ResourceSnapshot
from VmpFitness import ObjectiveWeights
from VmpSearch import STRATEGIES, SearchParameters


class ConfigError(ValueError):
    pass


# ---------------------------------------------------------
# Config Loader
# ---------------------------------------------------------
class VmpConfig:
    """
    Configuration class for the VM placement search (YAML).
    Options map: cfg key -> (type, mandatory) or, for Search, (type, SearchParameters field).
    """
    options = {
        'Simulation': {
            'randomSeed': (int, False),
            'strategies': (list, False),
            'numProcesses': (int, False),
            'outputPrefix': (str, False),
            'normalizeWeights': (bool, False),
        },
        'Search': {
            'populationSize': (int, 'population_size'),
            'maxIterations': (int, 'max_iterations'),
            'convergenceThreshold': (float, 'convergence_threshold'),
            'convergenceWindow': (int, 'convergence_window'),
            'relativeConvergence': (bool, 'relative_convergence'),
            'mutationRate': (float, 'mutation_rate'),
            'crossoverRate': (float, 'crossover_rate'),
            'elitismCount': (int, 'elitism_count'),
            'seedGreedy': (bool, 'seed_greedy'),
            'inertiaWeight': (float, 'inertia'),
            'cognitiveFactor': (float, 'cognitive'),
            'socialFactor': (float, 'social'),
            'alpha': (float, 'alpha'),
            'beta': (float, 'beta'),
            'evaporationRate': (float, 'evaporation_rate'),
            'depositQ': (float, 'deposit_q'),
            'initialPheromone': (float, 'initial_pheromone'),
            'minPheromone': (float, 'min_pheromone'),
            'maxPheromone': (float, 'max_pheromone'),
            'territorialGreedy': (bool, 'territorial_greedy'),
            'timeLimit': (float, 'time_limit'),
        },
        'HostSpecs': (dict, True),
        'VmSpecs': (dict, True),
    }

    def __init__(self, inFileName):
        with open(inFileName, 'r') as infile:
            ymlcfg = yaml.safe_load(infile)
        self.load(ymlcfg or {})

    @classmethod
    def from_dict(cls, ymlcfg):
        cfg = cls.__new__(cls)
        cfg.load(ymlcfg)
        return cfg

    def load(self, ymlcfg):
        if not isinstance(ymlcfg, dict):
            raise ConfigError('configuration root must be a mapping')

        # Process Simulation Section
        sim_cfg = ymlcfg.get('Simulation', {}) or {}
        for opt, (opt_type, mandatory) in self.options['Simulation'].items():
            if opt in sim_cfg:
                self._check_type('Simulation', opt, sim_cfg[opt], opt_type)
            elif mandatory:
                raise ConfigError(f'Missing "{opt}" in "Simulation" section')
        self.seed = sim_cfg.get('randomSeed', 42)
        self.strategies = sim_cfg.get('strategies', list(STRATEGIES))
        unknown = [s for s in self.strategies if s not in STRATEGIES]
        if unknown:
            raise ConfigError(f'Unknown strategies: {", ".join(map(str, unknown))}')
        self.n_proc = sim_cfg.get('numProcesses', 0)
        self.output_prefix = sim_cfg.get('outputPrefix', 'vmp')

        # Process Search Section
        search_cfg = ymlcfg.get('Search', {}) or {}
        self.search = {}
        for opt, val in search_cfg.items():
            if opt not in self.options['Search']:
                raise ConfigError(f'Unknown parameter "{opt}" in "Search" section')
            opt_type, attr = self.options['Search'][opt]
            self._check_type('Search', opt, val, opt_type)
            self.search[attr] = float(val) if opt_type is float else val

        # Process Weights Section
        try:
            self.weights = ObjectiveWeights.from_dict(ymlcfg.get('Weights', {}) or {})
        except (TypeError, ValueError) as e:
            raise ConfigError(f'Bad "Weights" section: {e}') from e
        if sim_cfg.get('normalizeWeights', False):
            self.weights = self.weights.normalized()

        # Process HostSpecs / VmSpecs Sections
        for section in ('HostSpecs', 'VmSpecs'):
            if not isinstance(ymlcfg.get(section), dict) or not ymlcfg[section]:
                raise ConfigError(f'Missing "{section}" section in cfg file')
        self.hostSpecs = ymlcfg['HostSpecs']
        self.vmSpecs = ymlcfg['VmSpecs']

    @staticmethod
    def _check_type(section, opt, val, opt_type):
        # ints are accepted where floats are expected, bools never pass as numbers
        if opt_type is float:
            ok = isinstance(val, (int, float)) and not isinstance(val, bool)
        elif opt_type is int:
            ok = isinstance(val, int) and not isinstance(val, bool)
        else:
            ok = isinstance(val, opt_type)
        if not ok:
            raise ConfigError(f'Parameter "{opt}" in "{section}" has wrong type')

    def search_parameters(self):
        return SearchParameters(seed=self.seed, weights=self.weights,
                                processes=self.n_proc, **self.search)

    @staticmethod
    def _expand(specs, prefix):
        """Named types with a count -> one dict per entity"""
        entities = []
        for type_name, spec in specs.items():
            if not isinstance(spec, dict):
                raise ConfigError(f'Spec "{type_name}" must be a mapping')
            count = spec.get('count', 1)
            if not isinstance(count, int) or count < 0:
                raise ConfigError(f'Spec "{type_name}" has a bad count: {count!r}')
            for i in range(count):
                entity = {k: v for k, v in spec.items() if k != 'count'}
                entity['id'] = f'{prefix}{type_name}_{i}'
                entity['type'] = type_name
                entities.append(entity)
        return entities

    def hosts(self):
        return self._expand(self.hostSpecs, 'H_')

    def vms(self):
        return self._expand(self.vmSpecs, 'VM_')

    def resources(self):
        hosts, vms = self.hosts(), self.vms()
        for entity in hosts + vms:
            if not any(d in entity for d in DIMENSIONS):
                raise ConfigError(f'"{entity["type"]}" declares none of {", ".join(DIMENSIONS)}')
        return ResourceSnapshot.from_specs(hosts, vms)
