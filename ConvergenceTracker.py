import logging

import numpy as np
import pandas as pd

logger = logging.getLogger(__name__)

MIN_ITERATIONS = 10


def population_diversity(assignments):
    """
    Mean pairwise Hamming distance (fraction of differing genes)
    over all unique pairs. Always in [0, 1].
    """
    genes = np.asarray(assignments)
    if genes.ndim != 2 or genes.shape[0] < 2 or genes.shape[1] == 0:
        return 0.0
    # [FAST] pairwise distance matrix in one shot, populations are small
    dist = (genes[:, None, :] != genes[None, :, :]).mean(axis=2)
    upper = np.triu_indices(genes.shape[0], k=1)
    return float(dist[upper].mean())


class ConvergenceRecord:
    """Append-only (iteration, best_fitness, diversity) history"""
    COLUMNS = ('iteration', 'best_fitness', 'diversity')

    def __init__(self):
        self._entries = []

    def __len__(self):
        return len(self._entries)

    def __getitem__(self, key):
        return self._entries[key]

    def __iter__(self):
        return iter(self._entries)

    def append(self, iteration, best_fitness, diversity):
        if self._entries and iteration <= self._entries[-1][0]:
            raise ValueError(f'iteration {iteration} is not after {self._entries[-1][0]}')
        self._entries.append((int(iteration), float(best_fitness), float(diversity)))

    @property
    def best_fitness_history(self):
        return [e[1] for e in self._entries]

    @property
    def diversity_history(self):
        return [e[2] for e in self._entries]

    def to_frame(self):
        return pd.DataFrame(self._entries, columns=list(self.COLUMNS))


class ConvergenceTracker:
    """
    Records best fitness / diversity per iteration and signals stagnation:
    once enough iterations have elapsed, the best fitness `window` iterations
    ago is compared with the current one.
    """
    def __init__(self, threshold, window=10, relative=False):
        self.threshold = threshold
        self.window = window
        self.relative = relative
        self.record = ConvergenceRecord()

    def observe(self, iteration, population):
        diversity = population_diversity(population.assignments())
        self.record.append(iteration, population.best_fitness, diversity)
        return diversity

    def improvement(self):
        """Improvement over the trailing window, None while the window is not full"""
        history = self.record.best_fitness_history
        if len(history) < max(MIN_ITERATIONS, self.window + 1):
            return None
        before, now = history[-1 - self.window], history[-1]
        delta = before - now
        if self.relative:
            delta = delta / max(abs(before), 1e-12)
        return delta

    def has_converged(self):
        delta = self.improvement()
        if delta is None:
            return False
        converged = delta < self.threshold
        if converged:
            logger.info('Convergence: improvement %.6g < threshold %.6g over %d iterations',
                        delta, self.threshold, self.window)
        return converged

    # --------------------------------------------
    # Reporting statistics
    # --------------------------------------------
    def convergence_speed(self):
        """Fraction of the run needed to reach 90% of the total improvement (lower is faster)"""
        history = self.record.best_fitness_history
        if len(history) < 5:
            return 0.0
        target = history[0] - 0.9 * (history[0] - history[-1])
        for i, value in enumerate(history):
            if value <= target:
                return i / len(history)
        return 1.0

    def stability(self):
        """1 / (1 + variance) of the last 20% of the best-fitness history"""
        history = self.record.best_fitness_history
        if len(history) < MIN_ITERATIONS:
            return 0.0
        tail = np.asarray(history[int(len(history) * 0.8):])
        return float(1.0 / (1.0 + np.var(tail)))

    def summary(self):
        history = self.record.best_fitness_history
        diversity = self.record.diversity_history
        if not history:
            return {}
        return {
            'initial_fitness': history[0],
            'final_fitness': history[-1],
            'fitness_improvement': history[0] - history[-1],
            'initial_diversity': diversity[0],
            'final_diversity': diversity[-1],
            'average_diversity': float(np.mean(diversity)),
            'convergence_speed': self.convergence_speed(),
            'convergence_stability': self.stability(),
        }
