import pytest

from ResourceView import ResourceSnapshot
from VmpFitness import ObjectiveWeights, evaluate, fitness_function, host_loads


def test_evaluate_is_pure():
    res = ResourceSnapshot.uniform(6, 3)
    assignment = [0, 1, 2, 0, 1, 1]
    assert evaluate(assignment, res) == evaluate(assignment, res)


def test_breakdown_sums_to_fitness():
    res = ResourceSnapshot.uniform(6, 3)
    fitness, feasible, breakdown = evaluate([0, 0, 0, 1, 1, 2], res)
    assert feasible
    assert set(breakdown) == {'balance', 'infeasibility', 'unused_hosts', 'power', 'sla'}
    assert sum(breakdown.values()) == pytest.approx(fitness)


def test_host_loads_sums_demand():
    res = ResourceSnapshot.uniform(3, 2)
    loads, vm_counts, n_unassigned = host_loads([0, 0, -1], res)
    assert loads['cpu'][0] == pytest.approx(2000.0)
    assert loads['cpu'][1] == pytest.approx(0.0)
    assert list(vm_counts) == [2, 0]
    assert n_unassigned == 1


def test_unassigned_vm_is_infeasible():
    res = ResourceSnapshot.uniform(2, 2)
    fitness, feasible, breakdown = evaluate([-1, 1], res)
    assert not feasible
    # one unit of overflow * penalty coefficient * infeasibility weight
    assert breakdown['infeasibility'] == pytest.approx(0.3 * 10.0)


def test_unused_hosts_counted():
    res = ResourceSnapshot.uniform(2, 4)
    _, _, breakdown = evaluate([0, 0], res)
    assert breakdown['unused_hosts'] == pytest.approx(0.2 * 3 / 4)


def test_power_linear_model():
    res = ResourceSnapshot.uniform(2, 4)
    _, _, breakdown = evaluate([0, 0], res)
    draw = 86.0 + (117.0 - 86.0) * 0.5
    assert breakdown['power'] == pytest.approx(0.1 * draw / (4 * 117.0))


def test_sla_counts_vms_on_hot_hosts():
    res = ResourceSnapshot.uniform(4, 2)
    weights = ObjectiveWeights(sla=1.0, sla_threshold=0.5)
    # host 0 runs at 75% cpu, host 1 at 25%
    _, _, breakdown = evaluate([0, 0, 0, 1], res, weights)
    assert breakdown['sla'] == pytest.approx(3 / 4)


def test_feasibility_dominance():
    hosts = [{'cpu': 1000, 'ram': 1000, 'bw': 1000, 'storage': 1000}] * 2
    exact = ResourceSnapshot.from_specs(hosts, [{'cpu': 1000, 'ram': 1000, 'bw': 1000, 'storage': 1000}] * 2)
    over = ResourceSnapshot.from_specs(hosts, [{'cpu': 2000, 'ram': 2000, 'bw': 2000, 'storage': 2000}] * 2)
    f_ok, feasible_ok, b_ok = evaluate([0, 1], exact)
    f_bad, feasible_bad, b_bad = evaluate([0, 1], over)

    assert b_ok['balance'] == pytest.approx(b_bad['balance'])
    assert b_ok['unused_hosts'] == pytest.approx(b_bad['unused_hosts'])
    assert feasible_ok and not feasible_bad
    assert b_ok['infeasibility'] == 0.0
    assert b_bad['infeasibility'] > 0.0
    assert f_ok < f_bad


def test_overflow_is_relative_to_capacity():
    hosts = [{'cpu': 1000, 'ram': 1000}]
    res = ResourceSnapshot.from_specs(hosts, [{'cpu': 1500, 'ram': 500}])
    _, feasible, breakdown = evaluate([0], res)
    assert not feasible
    assert breakdown['infeasibility'] == pytest.approx(0.3 * 10.0 * 0.5)


def test_fitness_function_binds_snapshot():
    res = ResourceSnapshot.uniform(3, 2)
    fn = fitness_function(res)
    assert fn([0, 1, 1]) == evaluate([0, 1, 1], res)


def test_weights_validation():
    ObjectiveWeights().validate()
    with pytest.raises(ValueError):
        ObjectiveWeights(balance=-0.1).validate()
    with pytest.raises(ValueError):
        ObjectiveWeights(infeasibility=0.0).validate()
    with pytest.raises(ValueError):
        ObjectiveWeights(sla_threshold=1.5).validate()


def test_weights_normalized_and_dict_roundtrip():
    w = ObjectiveWeights(balance=2, infeasibility=1, unused_hosts=1, power=0, sla=0).normalized()
    total = w.balance + w.infeasibility + w.unused_hosts + w.power + w.sla
    assert total == pytest.approx(1.0)
    assert w.balance == pytest.approx(0.5)
    assert ObjectiveWeights.from_dict(w.to_dict()) == w
    with pytest.raises(ValueError):
        ObjectiveWeights.from_dict({'latency': 1.0})
