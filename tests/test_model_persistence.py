"""
test_model_persistence.py
~~~~~~~~~~~~~~~~~~~~~~~~~~

Unit tests for the SQLite model store.
"""

import os
import sqlite3

import numpy as np
import pytest

from hydranet import MultiLayerPerceptron, KohonenMap
from hydranet.model_persistence import (
    save_network,
    load_network,
    list_saved_networks,
    delete_network,
    get_network_metadata,
    delete_old_networks,
    ModelDatabase
)


XOR_INPUTS = [[0.0, 0.0], [0.0, 1.0], [1.0, 0.0], [1.0, 1.0]]
XOR_OUTPUTS = [[0.0], [1.0], [1.0], [0.0]]


@pytest.fixture
def temp_db_dir(tmp_path):
    """Create a temporary directory for database storage."""
    db_dir = tmp_path / "test_models"
    db_dir.mkdir()
    return str(db_dir)


@pytest.fixture
def simple_network():
    """Create a simple 3-layer perceptron for testing."""
    return MultiLayerPerceptron([3, 4, 2], rng=0)


@pytest.fixture
def trained_network():
    """Create a perceptron with a few passes of training applied."""
    net = MultiLayerPerceptron([2, 3, 1], rng=1, max_attempts=10)
    net.train(XOR_INPUTS, XOR_OUTPUTS)
    return net


def _age_network(temp_db_dir, network_id, modifier):
    """Move a network's created_at into the past, e.g. '-3 days'."""
    conn = sqlite3.connect(os.path.join(temp_db_dir, "networks.db"))
    conn.execute('''
        UPDATE networks
        SET created_at = datetime('now', ?)
        WHERE network_id = ?
    ''', (modifier, network_id))
    conn.commit()
    conn.close()


@pytest.mark.unit
class TestModelPersistence:
    """Test basic model store operations."""

    def test_save_network_creates_database(self, simple_network, temp_db_dir):
        """Test that saving a network creates the database file."""
        success = save_network(
            simple_network,
            "test_network_1",
            model_dir=temp_db_dir,
            trained=False
        )

        assert success is True
        assert os.path.exists(f"{temp_db_dir}/networks.db")

    def test_save_network_with_metadata(self, trained_network, temp_db_dir):
        """Test that network metadata is saved correctly."""
        network_id = "trained_network_1"

        save_network(
            trained_network,
            network_id,
            model_dir=temp_db_dir,
            trained=True,
            accuracy=0.75
        )

        metadata = get_network_metadata(network_id, temp_db_dir)
        assert metadata is not None
        assert metadata['network_id'] == network_id
        assert metadata['kind'] == 'mlp'
        assert metadata['trained'] is True
        assert metadata['accuracy'] == 0.75
        assert metadata['architecture'] == [2, 3, 1]

    def test_load_network_returns_same_kind(self, simple_network, temp_db_dir):
        """Test that loading restores the right class and topology."""
        save_network(simple_network, "test_network_2", model_dir=temp_db_dir)
        loaded = load_network("test_network_2", temp_db_dir)

        assert isinstance(loaded, MultiLayerPerceptron)
        assert loaded.sizes == simple_network.sizes

    def test_load_preserves_weights(self, trained_network, temp_db_dir):
        """Test that stored weights are restored exactly."""
        save_network(trained_network, "test_network_3", model_dir=temp_db_dir)
        loaded = load_network("test_network_3", temp_db_dir)

        for original_w, loaded_w in zip(trained_network.weights, loaded.weights):
            assert np.array_equal(original_w, loaded_w)

    def test_kohonen_map_round_trip(self, temp_db_dir):
        """Test that a Kohonen map is stored and restored as one."""
        kmap = KohonenMap(3, 3, 2, rng=4)
        save_network(kmap, "kmap", model_dir=temp_db_dir, trained=False)

        loaded = load_network("kmap", temp_db_dir)

        assert isinstance(loaded, KohonenMap)
        assert np.array_equal(loaded.weights, kmap.weights)
        assert get_network_metadata("kmap", temp_db_dir)['architecture'] == [3, 3, 2]

    def test_load_nonexistent_network(self, temp_db_dir):
        """Test that loading a non-existent network returns None."""
        assert load_network("nonexistent", temp_db_dir) is None

    def test_load_corrupt_network(self, simple_network, temp_db_dir):
        """Test that a truncated stored dump is reported as None."""
        save_network(simple_network, "corrupt", model_dir=temp_db_dir)

        conn = sqlite3.connect(os.path.join(temp_db_dir, "networks.db"))
        conn.execute(
            "UPDATE networks SET network_data = '3 4 2\n0.5\n' "
            "WHERE network_id = 'corrupt'"
        )
        conn.commit()
        conn.close()

        assert load_network("corrupt", temp_db_dir) is None

    @pytest.mark.parametrize('network_id', ['', None, 42])
    def test_invalid_network_id(self, simple_network, temp_db_dir, network_id):
        """Test that invalid identifiers are rejected without raising."""
        assert save_network(simple_network, network_id, model_dir=temp_db_dir) is False
        assert load_network(network_id, temp_db_dir) is None
        assert delete_network(network_id, temp_db_dir) is False
        assert get_network_metadata(network_id, temp_db_dir) is None

    def test_invalid_accuracy(self, simple_network, temp_db_dir):
        """Test that accuracy outside [0, 1] is not saved."""
        assert save_network(
            simple_network, "bad", model_dir=temp_db_dir, accuracy=1.5
        ) is False
        assert get_network_metadata("bad", temp_db_dir) is None

    def test_list_saved_networks_empty(self, temp_db_dir):
        """Test listing networks when database is empty."""
        assert list_saved_networks(temp_db_dir) == []

    def test_list_saved_networks_includes_metadata(self, simple_network, temp_db_dir):
        """Test that listed networks include all expected metadata fields."""
        save_network(simple_network, "net1", model_dir=temp_db_dir, accuracy=0.9)
        save_network(KohonenMap(2, 2, 3), "net2", model_dir=temp_db_dir, trained=False)

        networks = {net['network_id']: net for net in list_saved_networks(temp_db_dir)}

        assert set(networks) == {"net1", "net2"}
        assert networks['net1']['kind'] == 'mlp'
        assert networks['net2']['kind'] == 'kohonen'
        assert networks['net2']['architecture'] == [2, 2, 3]
        assert networks['net2']['trained'] is False
        assert 'created_at' in networks['net1']
        assert 'updated_at' in networks['net1']

    def test_delete_network(self, simple_network, temp_db_dir):
        """Test successful and unsuccessful deletion."""
        save_network(simple_network, "delete_test", model_dir=temp_db_dir)

        assert delete_network("delete_test", temp_db_dir) is True
        assert load_network("delete_test", temp_db_dir) is None
        assert delete_network("delete_test", temp_db_dir) is False

    def test_update_network(self, simple_network, temp_db_dir):
        """Test that saving with the same ID replaces the stored network."""
        network_id = "update_test"
        save_network(simple_network, network_id, model_dir=temp_db_dir, trained=False)
        assert get_network_metadata(network_id, temp_db_dir)['trained'] is False

        save_network(
            simple_network,
            network_id,
            model_dir=temp_db_dir,
            trained=True,
            accuracy=0.88
        )

        metadata = get_network_metadata(network_id, temp_db_dir)
        assert metadata['trained'] is True
        assert metadata['accuracy'] == 0.88
        assert len(list_saved_networks(temp_db_dir)) == 1


@pytest.mark.integration
class TestPersistenceIntegration:
    """Integration tests for the model store."""

    def test_save_load_train_cycle(self, simple_network, temp_db_dir):
        """Test complete cycle: save, load, train, save again."""
        network_id = "cycle_test"
        save_network(simple_network, network_id, model_dir=temp_db_dir, trained=False)

        loaded = load_network(network_id, temp_db_dir)
        loaded.max_attempts = 5
        loaded.train(
            [[0.0, 0.0, 1.0], [1.0, 0.0, 0.0]],
            [[1.0, 0.0], [0.0, 1.0]]
        )
        score = loaded.evaluate(
            [[0.0, 0.0, 1.0], [1.0, 0.0, 0.0]],
            [[1.0, 0.0], [0.0, 1.0]]
        )
        save_network(
            loaded,
            network_id,
            model_dir=temp_db_dir,
            trained=True,
            accuracy=score / 4
        )

        final = load_network(network_id, temp_db_dir)
        metadata = get_network_metadata(network_id, temp_db_dir)

        assert np.array_equal(final.weights[0], loaded.weights[0])
        assert metadata['trained'] is True
        assert metadata['accuracy'] == score / 4

    def test_multiple_networks_coexist(self, temp_db_dir):
        """Test that several networks of both kinds coexist."""
        networks_to_create = [
            (MultiLayerPerceptron([784, 30, 10]), "mnist_network"),
            (MultiLayerPerceptron([10, 20, 20, 10]), "deep_network"),
            (KohonenMap(5, 5, 2), "kohonen_network")
        ]

        for net, network_id in networks_to_create:
            assert save_network(net, network_id, model_dir=temp_db_dir)

        assert len(list_saved_networks(temp_db_dir)) == len(networks_to_create)
        for net, network_id in networks_to_create:
            loaded = load_network(network_id, temp_db_dir)
            assert type(loaded) is type(net)
            assert loaded.topology == net.topology


@pytest.mark.unit
class TestDeleteOldNetworks:
    """Tests for cleanup of old networks."""

    def test_delete_old_networks_basic(self, simple_network, temp_db_dir):
        """Test that a network older than the threshold is deleted."""
        save_network(simple_network, "old", model_dir=temp_db_dir)
        _age_network(temp_db_dir, "old", '-3 days')

        assert delete_old_networks(days=2, model_dir=temp_db_dir) == 1
        assert load_network("old", temp_db_dir) is None

    def test_delete_old_networks_mixed_ages(self, simple_network, temp_db_dir):
        """Test with a mix of old and recent networks."""
        old_ids = ["old_1", "old_2"]
        recent_ids = ["recent_1", "recent_2"]
        for network_id in old_ids + recent_ids:
            save_network(simple_network, network_id, model_dir=temp_db_dir)
        for network_id in old_ids:
            _age_network(temp_db_dir, network_id, '-3 days')

        assert delete_old_networks(days=2, model_dir=temp_db_dir) == len(old_ids)
        for network_id in old_ids:
            assert load_network(network_id, temp_db_dir) is None
        for network_id in recent_ids:
            assert load_network(network_id, temp_db_dir) is not None

    def test_delete_old_networks_empty_db(self, temp_db_dir):
        """Test delete_old_networks on an empty database."""
        assert delete_old_networks(days=2, model_dir=temp_db_dir) == 0

    def test_delete_old_networks_negative_days(self, temp_db_dir):
        """Test that negative days raises ValueError."""
        with pytest.raises(ValueError) as exc_info:
            delete_old_networks(days=-1, model_dir=temp_db_dir)
        assert "non-negative" in str(exc_info.value)

    def test_model_database_method(self, temp_db_dir):
        """Test ModelDatabase.delete_old_networks_from_db directly."""
        db = ModelDatabase(db_path=os.path.join(temp_db_dir, "networks.db"))
        db.save_network_to_db(KohonenMap(2, 2, 2), "kmap", trained=False)
        _age_network(temp_db_dir, "kmap", '-1 hour')

        assert db.delete_old_networks_from_db(days=0) == 1
        assert db.load_network_from_db("kmap") is None
