import numpy as np
import pytest

from ResourceView import DIMENSIONS, ResourceSnapshot


def small_cluster():
    hosts = [
        {'id': 'h0', 'cpu': 1000, 'ram': 2048, 'bw': 1000, 'storage': 10000, 'cpu_used': 900},
        {'id': 'h1', 'cpu': 4000, 'ram': 8192, 'bw': 1000, 'storage': 10000},
    ]
    vms = [
        {'id': 'vm0', 'cpu': 200, 'ram': 512, 'bw': 100, 'storage': 100},
        {'id': 'vm1', 'cpu': 5000, 'ram': 512, 'bw': 100, 'storage': 100},
    ]
    return ResourceSnapshot.from_specs(hosts, vms)


def test_uniform_counts_and_ids():
    res = ResourceSnapshot.uniform(8, 5)
    assert res.vm_count == 8
    assert res.host_count == 5
    assert res.vm_ids == list(range(8))
    assert res.host_ids == list(range(5))


def test_accessors_return_every_dimension():
    res = small_cluster()
    assert set(res.capacity(1)) == set(DIMENSIONS)
    assert res.capacity(1)['cpu'] == 4000
    assert res.requirement(0)['ram'] == 512
    assert res.available(0)['cpu'] == pytest.approx(100)


def test_current_utilization_uses_background_load():
    res = small_cluster()
    util = res.current_utilization(0)
    assert util['cpu_percent'] == pytest.approx(90.0)
    assert util['ram_percent'] == pytest.approx(0.0)


def test_suitability_respects_background_load():
    res = small_cluster()
    # h0 only has 100 MIPS left
    assert not res.is_suitable(0, 0)
    assert res.is_suitable(0, 1)
    # vm1 fits nowhere
    assert list(res.suitable_hosts(1)) == []
    assert res.suitability_matrix().shape == (2, 2)


def test_arrays_are_read_only():
    res = small_cluster()
    with pytest.raises(ValueError):
        res.caps['cpu'][0] = 1.0
    with pytest.raises(ValueError):
        res.suitability_matrix()[0, 0] = True


def test_mismatched_ids_rejected():
    with pytest.raises(ValueError):
        ResourceSnapshot({'cpu': [1, 2]}, {'cpu': [1]}, host_ids=['only-one'])


def test_mismatched_dimension_length_rejected():
    with pytest.raises(ValueError):
        ResourceSnapshot({'cpu': [1, 2], 'ram': [1]}, {'cpu': [1]})


def test_missing_dimensions_default_to_zero():
    res = ResourceSnapshot({'cpu': np.array([10.0])}, {'cpu': np.array([5.0])})
    assert res.capacity(0)['storage'] == 0.0
    assert res.is_suitable(0, 0)
