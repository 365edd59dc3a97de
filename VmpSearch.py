import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional

import numpy as np

from ConvergenceTracker import ConvergenceRecord, ConvergenceTracker
from GeneticStrategy import GeneticStrategy
from PheromoneStrategy import PheromoneStrategy
from ResourceView import ResourceSnapshot
from SwarmStrategy import SwarmStrategy
from TerritorialStrategy import TerritorialStrategy
from VmpFitness import ObjectiveWeights, evaluate
from VmpIndividual import make_pool, pool_matches

logger = logging.getLogger(__name__)

STRATEGIES = {
    GeneticStrategy.name: GeneticStrategy,
    SwarmStrategy.name: SwarmStrategy,
    PheromoneStrategy.name: PheromoneStrategy,
    TerritorialStrategy.name: TerritorialStrategy,
}


class InvalidInputError(ValueError):
    """Malformed search input, reported before any population exists"""


class SearchState(Enum):
    INITIALIZING = 'initializing'
    EVALUATING = 'evaluating'
    CONVERGED = 'converged'
    ITERATION_LIMIT_REACHED = 'iteration_limit_reached'
    DEADLINE_REACHED = 'deadline_reached'


@dataclass(frozen=True)
class SearchParameters:
    """Immutable settings of one search run"""
    population_size: int = 30
    max_iterations: int = 100
    convergence_threshold: float = 1e-4
    seed: Optional[int] = None

    # Genetic
    mutation_rate: float = 0.05
    crossover_rate: float = 0.8
    elitism_count: int = 2
    seed_greedy: bool = True

    # Swarm
    inertia: float = 0.7
    cognitive: float = 1.5
    social: float = 1.5

    # Pheromone
    alpha: float = 1.0
    beta: float = 2.0
    evaporation_rate: float = 0.1
    deposit_q: float = 1.0
    initial_pheromone: float = 0.1
    min_pheromone: float = 0.001
    max_pheromone: float = 10.0

    # Territorial
    territorial_greedy: bool = True

    # Convergence (window None: the strategy's own lookback)
    convergence_window: Optional[int] = None
    relative_convergence: bool = False

    weights: ObjectiveWeights = field(default_factory=ObjectiveWeights)
    time_limit: Optional[float] = None
    processes: int = 0

    def validate(self):
        def fail(msg):
            raise InvalidInputError(msg)

        def is_int(value):
            return isinstance(value, (int, np.integer)) and not isinstance(value, bool)

        if not is_int(self.population_size) or self.population_size < 1:
            fail(f'population_size must be a positive integer, got {self.population_size!r}')
        if not is_int(self.max_iterations) or self.max_iterations < 1:
            fail(f'max_iterations must be a positive integer, got {self.max_iterations!r}')
        for name in ('elitism_count', 'processes'):
            if not is_int(getattr(self, name)):
                fail(f'{name} must be an integer, got {getattr(self, name)!r}')
        # NaN fails every comparison, so bounds are written as "not >= 0"
        if not self.convergence_threshold >= 0:
            fail(f'convergence_threshold must be >= 0, got {self.convergence_threshold}')
        for name in ('mutation_rate', 'crossover_rate', 'evaporation_rate'):
            value = getattr(self, name)
            if not 0.0 <= value <= 1.0:
                fail(f'{name} must lie in [0, 1], got {value}')
        for name in ('inertia', 'cognitive', 'social', 'alpha', 'beta', 'deposit_q'):
            if not getattr(self, name) >= 0:
                fail(f'{name} must be >= 0, got {getattr(self, name)}')
        if self.elitism_count < 0:
            fail(f'elitism_count must be >= 0, got {self.elitism_count}')
        if not 0 < self.min_pheromone <= self.initial_pheromone <= self.max_pheromone:
            fail('pheromone levels must satisfy 0 < min <= initial <= max')
        if self.convergence_window is not None and \
                (not is_int(self.convergence_window) or self.convergence_window < 1):
            fail(f'convergence_window must be >= 1, got {self.convergence_window}')
        if self.time_limit is not None and not self.time_limit > 0:
            fail(f'time_limit must be positive, got {self.time_limit}')
        if self.processes < 0:
            fail(f'processes must be >= 0, got {self.processes}')
        try:
            self.weights.validate()
        except ValueError as e:
            raise InvalidInputError(str(e)) from e


@dataclass(frozen=True)
class ExecutionStats:
    strategy: str
    execution_time_ms: float
    evaluations: int
    iterations: int
    population_size: int
    converged: bool
    state: SearchState
    seed: Optional[int] = None


@dataclass
class SearchResult:
    assignment: Dict            # vm id -> host id, unassigned VMs omitted
    best_assignment: np.ndarray
    best_fitness: float
    feasible: bool
    objective_breakdown: Dict[str, float]
    record: ConvergenceRecord
    stats: ExecutionStats
    statistics: Dict[str, float] = field(default_factory=dict)

    @property
    def converged(self):
        return self.stats.converged

    @property
    def convergence_history(self) -> List[float]:
        return self.record.best_fitness_history

    @property
    def diversity_history(self) -> List[float]:
        return self.record.diversity_history


def validate_inputs(vm_count, host_count, params):
    if vm_count is None or vm_count <= 0:
        raise InvalidInputError(f'vm_count must be positive, got {vm_count}')
    if host_count is None or host_count <= 0:
        raise InvalidInputError(f'host_count must be positive, got {host_count}')
    if params is None:
        raise InvalidInputError('search parameters are required')
    params.validate()


def get_strategy(name):
    try:
        return STRATEGIES[name]
    except KeyError:
        raise InvalidInputError(
            f'unknown strategy "{name}", expected one of {", ".join(sorted(STRATEGIES))}') from None


# ---------------------------------------------------------
# Search Driver
# ---------------------------------------------------------
class VmpSearch:
    """
    Iteration loop shared by every variation strategy:
    evaluate -> update best-ever -> record -> next generation,
    until the iteration cap, convergence, or the optional deadline.
    """
    def __init__(self, resources, params, strategy='genetic', pool=None):
        validate_inputs(resources.vm_count, resources.host_count, params)
        self.resources = resources
        self.params = params
        self.strategy_name = strategy
        self.strategy = get_strategy(strategy)(resources, params)

        window = params.convergence_window or self.strategy.convergence_window
        self.tracker = ConvergenceTracker(params.convergence_threshold, window,
                                          params.relative_convergence)
        if pool is not None and not pool_matches(pool, resources, params.weights):
            raise InvalidInputError('pool was built for a different snapshot or weights, '
                                    'create it with make_pool(processes, resources, params.weights)')
        self.pool = pool
        self.state = SearchState.INITIALIZING
        self.iteration = 0
        self.evaluations = 0
        self.population = None
        self._rng = None
        self._started = None
        self._elapsed = 0.0

    def _fitness_fn(self, assignment):
        self.evaluations += 1
        return evaluate(assignment, self.resources, self.params.weights)

    def start(self):
        self._started = time.perf_counter()
        self._rng = np.random.default_rng(self.params.seed)
        logger.info('Starting %s search: VMs=%d, Hosts=%d, PopSize=%d',
                    self.strategy_name, self.resources.vm_count,
                    self.resources.host_count, self.params.population_size)
        if self.resources.host_count > self.resources.vm_count:
            logger.warning('More hosts than VMs - some hosts will be unused')
        self.population = self.strategy.initialize(
            self.resources.vm_count, self.resources.host_count, self._rng)
        self.state = SearchState.EVALUATING

    def _terminal_state(self):
        if self.iteration >= self.params.max_iterations:
            return SearchState.ITERATION_LIMIT_REACHED
        if self.tracker.has_converged():
            return SearchState.CONVERGED
        # At least one iteration runs so there is always a best-ever to report
        if self.params.time_limit is not None and self.iteration > 0 and \
                time.perf_counter() - self._started >= self.params.time_limit:
            logger.warning('Time limit of %.1fs reached after %d iterations',
                           self.params.time_limit, self.iteration)
            return SearchState.DEADLINE_REACHED
        return None

    def step(self):
        """
        Run one iteration. Returns False once the search reached a terminal state.
        Iteration boundaries are the only points where a caller may stop the search.
        """
        if self.state == SearchState.INITIALIZING:
            self.start()
        if self.state != SearchState.EVALUATING:
            return False

        terminal = self._terminal_state()
        if terminal is not None:
            self.state = terminal
            self._elapsed = time.perf_counter() - self._started
            return False

        pop = self.population
        self.evaluations += pop.evaluateFitness(self.resources, self.params.weights, self.pool)
        if pop.update_best():
            logger.debug('New best-ever at iteration %d: fitness = %.6f',
                         self.iteration, pop.best_fitness)
        diversity = self.tracker.observe(self.iteration, pop)
        if self.iteration % 10 == 0:
            logger.debug('Iteration %d: best = %.6f, diversity = %.3f',
                         self.iteration, pop.best_fitness, diversity)

        self.population = self.strategy.next_generation(pop, self._fitness_fn, self._rng)
        self.iteration += 1
        return True

    def run(self):
        own_pool = None
        if self.pool is None and self.params.processes > 1:
            own_pool = self.pool = make_pool(self.params.processes, self.resources, self.params.weights)
        try:
            while self.step():
                pass
        finally:
            if own_pool is not None:
                own_pool.close()
                own_pool.join()
                self.pool = None
        return self.result()

    def result(self):
        if self.population is None or self.population.best_ever is None:
            raise RuntimeError('no iteration has run yet, call step() or run() first')
        best = self.population.best_ever
        if self.state == SearchState.EVALUATING:
            # stopped from outside between iterations
            self._elapsed = time.perf_counter() - self._started
        converged = self.state == SearchState.CONVERGED
        stats = ExecutionStats(
            strategy=self.strategy_name,
            execution_time_ms=self._elapsed * 1000.0,
            evaluations=self.evaluations,
            iterations=self.iteration,
            population_size=self.params.population_size,
            converged=converged,
            state=self.state,
            seed=self.params.seed,
        )
        logger.info('%s search finished (%s) after %d iterations: best fitness %.6f, %d evaluations',
                    self.strategy_name, self.state.value, self.iteration, best.fitness, self.evaluations)
        return SearchResult(
            assignment=best.to_mapping(self.resources),
            best_assignment=best.assignment.copy(),
            best_fitness=best.fitness,
            feasible=best.feasible,
            objective_breakdown=dict(best.objectives),
            record=self.tracker.record,
            stats=stats,
            statistics=self.tracker.summary(),
        )


def search(vm_count, host_count, params=None, resources=None, strategy='genetic', pool=None):
    """
    Search a VM -> host assignment. Without a snapshot, a homogeneous
    cluster of the given size is assumed.
    """
    if params is None:
        params = SearchParameters()
    validate_inputs(vm_count, host_count, params)
    get_strategy(strategy)
    if resources is None:
        resources = ResourceSnapshot.uniform(vm_count, host_count)
    elif resources.vm_count != vm_count or resources.host_count != host_count:
        raise InvalidInputError(
            f'snapshot has {resources.vm_count} VMs / {resources.host_count} hosts, '
            f'expected {vm_count} / {host_count}')
    return VmpSearch(resources, params, strategy, pool).run()


def compare(resources, params, strategies=None, pool=None):
    """Run several strategies on the same snapshot and seed"""
    results = {}
    for name in strategies or list(STRATEGIES):
        results[name] = search(resources.vm_count, resources.host_count, params,
                               resources, name, pool)
    return results
