import os

import pytest

from pb_to_json.pb_to_json import EnvVariable


@pytest.fixture()
def content_root():
    content_root, _ = os.path.split(__file__)
    return content_root


@pytest.fixture()
def resources_dir(content_root):
    return os.path.join(content_root, 'tests', 'resources')


@pytest.fixture()
def read_resource(resources_dir):
    def _read_resource(name: str) -> str:
        with open(os.path.join(resources_dir, name), 'r', encoding='utf-8') as fh:
            return fh.read()
    return _read_resource


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """
    The PB2JSON_* variables of whoever runs the tests shouldn't change the results
    """
    for env_variable in EnvVariable.registry:
        monkeypatch.delenv(env_variable.env_name, raising=False)
