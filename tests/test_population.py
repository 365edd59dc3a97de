import numpy as np
import pytest

from ResourceView import ResourceSnapshot
from VmpFitness import ObjectiveWeights
from VmpIndividual import UNASSIGNED, VmpIndividual
from VmpPopulation import VmpPopulation


@pytest.fixture
def resources():
    return ResourceSnapshot.uniform(6, 3)


def make_population(assignments):
    return VmpPopulation([VmpIndividual(a) for a in assignments])


def test_copy_never_aliases(resources):
    ind = VmpIndividual([0, 1, 2, 0, 1, 2])
    ind.calculate_objectives(resources)
    other = ind.copy()
    other.assignment[0] = 2
    other.objectives['balance'] = 99.0
    assert ind.assignment[0] == 0
    assert ind.objectives['balance'] != 99.0
    assert other.fitness == ind.fitness


def test_invalidate_marks_stale(resources):
    ind = VmpIndividual([0, 1, 2, 0, 1, 2])
    ind.calculate_objectives(resources)
    assert ind.is_evaluated
    ind.invalidate()
    assert not ind.is_evaluated
    assert ind.objectives is None


def test_to_mapping_skips_unassigned():
    res = ResourceSnapshot.from_specs(
        [{'id': 'hA', 'cpu': 100}, {'id': 'hB', 'cpu': 100}],
        [{'id': 'v0', 'cpu': 1}, {'id': 'v1', 'cpu': 1}, {'id': 'v2', 'cpu': 1}])
    ind = VmpIndividual([1, UNASSIGNED, 0])
    assert ind.to_mapping(res) == {'v0': 'hB', 'v2': 'hA'}


def test_hamming():
    a = VmpIndividual([0, 1, 2, 3])
    b = VmpIndividual([0, 1, 0, 0])
    assert a.hamming(b) == pytest.approx(0.5)
    assert a.hamming(a) == 0.0


def test_evaluate_only_stale(resources):
    pop = make_population([[0, 1, 2, 0, 1, 2], [0, 0, 0, 1, 1, 1]])
    assert pop.evaluateFitness(resources, ObjectiveWeights()) == 2
    assert pop.evaluateFitness(resources, ObjectiveWeights()) == 0
    pop[0].invalidate()
    assert pop.evaluateFitness(resources, ObjectiveWeights()) == 1


def test_update_best_keeps_private_copy(resources):
    pop = make_population([[0, 1, 2, 0, 1, 2], [0, 0, 0, 0, 0, 0]])
    pop.evaluateFitness(resources, ObjectiveWeights())
    assert pop.update_best()
    best = pop.best_ever
    assert best is not pop[0] and best is not pop[1]
    assert best.fitness == min(ind.fitness for ind in pop)

    pop[0].assignment[:] = 0
    assert best.assignment.tolist() == [0, 1, 2, 0, 1, 2]
    # same fitness again is not a strict improvement
    assert not pop.update_best()


def test_best_fitness_defaults_to_infinity():
    assert VmpPopulation().best_fitness == float('inf')


def test_successor_carries_best(resources):
    pop = make_population([[0, 1, 2, 0, 1, 2]])
    pop.evaluateFitness(resources, ObjectiveWeights())
    pop.update_best()
    nxt = pop.successor([VmpIndividual([0] * 6)])
    assert nxt.best_ever is pop.best_ever
    assert len(nxt) == 1


def test_tournament_returns_copy_of_member(resources):
    pop = make_population([[0, 1, 2, 0, 1, 2], [0, 0, 0, 0, 0, 0], [1, 1, 1, 2, 2, 2]])
    pop.evaluateFitness(resources, ObjectiveWeights())
    rng = np.random.default_rng(0)
    winner = pop.tournament(2, rng)
    assert all(winner is not ind for ind in pop)
    assert winner.fitness in [ind.fitness for ind in pop]


def test_tournament_of_whole_identical_field(resources):
    pop = make_population([[0, 1, 2, 0, 1, 2]] * 4)
    pop.evaluateFitness(resources, ObjectiveWeights())
    winner = pop.tournament(3, np.random.default_rng(1))
    assert winner.assignment.tolist() == [0, 1, 2, 0, 1, 2]


def test_elites_sorted(resources):
    pop = make_population([[0, 0, 0, 0, 0, 0], [0, 1, 2, 0, 1, 2], [0, 0, 0, 1, 1, 1]])
    pop.evaluateFitness(resources, ObjectiveWeights())
    elites = pop.elites(2)
    assert len(elites) == 2
    assert elites[0].fitness <= elites[1].fitness
    assert elites[0].fitness == min(pop.fitness_values())
