import logging

import gtsam
import pytest

from tsdf_submaps.core.submap import Submap
from tsdf_submaps.core.submap_collection import SubmapCollection

from conftest import make_config, make_plane_layer


def translation(x):
    return gtsam.Pose3(gtsam.Rot3(), gtsam.Point3(x, 0.0, 0.0))


@pytest.fixture
def collection():
    collection = SubmapCollection(make_config())
    for x in [0.0, 1.0, 10.0]:
        submap = collection.create_new_submap(translation(x))
        submap.tsdf_layer = make_plane_layer()
        submap.finish_submap()
    return collection


def test_ids_are_assigned_in_order(collection):
    assert collection.get_ids() == [0, 1, 2]
    assert collection.size() == 3
    assert len(collection) == 3
    assert collection.exists(2)
    assert not collection.exists(3)


def test_default_pose_is_identity():
    submap = SubmapCollection().create_new_submap()
    assert submap.pose.equals(gtsam.Pose3(), 1e-12)


def test_duplicate_id_is_rejected(collection):
    with pytest.raises(ValueError):
        collection.add_submap(Submap(gtsam.Pose3(), 1))


def test_unknown_id_raises(collection):
    with pytest.raises(KeyError):
        collection.get_submap(42)


def test_explicit_id_is_skipped_by_auto_ids():
    collection = SubmapCollection()
    collection.create_new_submap(submap_id=0)
    assert collection.create_new_submap().submap_id == 1


def test_overlapping_pairs(collection):
    assert collection.get_overlapping_submap_pairs() == [(0, 1)]


def test_pairs_follow_pose_updates(collection):
    collection.set_submap_pose(2, translation(1.5))
    assert collection.get_submap_pose(2).equals(translation(1.5), 1e-12)
    assert collection.get_overlapping_submap_pairs() == [(0, 1), (0, 2), (1, 2)]


def test_unfinished_submaps_are_ignored(collection):
    collection.create_new_submap(translation(0.5))
    assert collection.get_overlapping_submap_pairs() == [(0, 1)]


def test_submaps_keep_their_own_logger():
    collection = SubmapCollection(make_config())
    submap = collection.create_new_submap()
    assert submap.logger.name == 'Submap'
    assert collection.logger.name == 'SubmapCollection'


def test_injected_logger_reaches_submaps():
    logger = logging.getLogger('mapping_node')
    collection = SubmapCollection(make_config(), logger=logger)
    assert collection.create_new_submap().logger is logger
