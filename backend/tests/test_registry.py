import dataclasses

import pytest

from eduflow import registry
from eduflow.registry import FieldType, descriptor_for
from eduflow.schemas import payload_model_for


def test_supported_entities():
    assert set(registry.entity_names()) == {'course', 'topic', 'study_goal', 'exam', 'todo'}


@pytest.mark.parametrize('name', ['', 'Course', 'user', 'session_token', 'courses'])
def test_unknown_names_have_no_descriptor(name):
    assert descriptor_for(name) is None


def test_descriptors_describe_their_tables():
    topic = descriptor_for('topic')
    assert topic.table == 'topic'
    assert descriptor_for('study_goal').table == 'study_goal'
    assert topic.owner_column == 'user_id'
    assert topic.id_column == 'id'
    assert topic.field_names == ('course_id', 'name', 'details')
    assert topic.filter_types() == {'id': FieldType.INT, 'course_id': FieldType.INT, 'name': FieldType.STR}


def test_every_descriptor_field_is_a_model_column():
    for name in registry.entity_names():
        d = descriptor_for(name)
        columns = set(d.model.__table__.columns.keys())
        assert {d.id_column, d.owner_column, *d.field_names} == columns


def test_registry_is_read_only():
    with pytest.raises(TypeError):
        registry.REGISTRY['grade'] = descriptor_for('course')
    with pytest.raises(dataclasses.FrozenInstanceError):
        descriptor_for('course').name = 'other'


def test_payload_models_are_built_once():
    d = descriptor_for('exam')
    assert payload_model_for(d) is payload_model_for(d)
    assert set(payload_model_for(d).model_fields) == {'id', 'course_id', 'name', 'date'}
