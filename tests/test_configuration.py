import unittest

import pytest

from jobscope import (
    Container,
    ContainerJobActivator,
    DefaultJobActivator,
    GlobalConfiguration,
    global_configuration,
    use_container_job_activator,
)


class TestGlobalConfiguration(unittest.TestCase):
    configuration: GlobalConfiguration

    def setUp(self):
        self.configuration = GlobalConfiguration()

    def test_default_activator_is_used_until_another_is_installed(self):
        assert isinstance(self.configuration.activator, DefaultJobActivator)
        assert self.configuration.activator is self.configuration.activator

    def test_use_activator_replaces_activator_and_chains(self):
        activator = ContainerJobActivator(Container())

        result = self.configuration.use_activator(activator)

        assert result is self.configuration
        assert self.configuration.activator is activator

    def test_use_activator_rejects_none(self):
        with pytest.raises(ValueError, match="activator"):
            self.configuration.use_activator(None)

    def test_use_container_job_activator_installs_container_activator(self):
        container = Container()

        result = use_container_job_activator(self.configuration, container)

        assert result is self.configuration
        assert isinstance(self.configuration.activator, ContainerJobActivator)
        assert self.configuration.activator.container is container

    def test_use_container_job_activator_rejects_missing_configuration(self):
        with pytest.raises(ValueError, match="configuration"):
            use_container_job_activator(None, Container())

    def test_use_container_job_activator_rejects_missing_container(self):
        with pytest.raises(ValueError, match="container"):
            use_container_job_activator(self.configuration, None)

    def test_use_container_job_activator_method_rejects_missing_container(self):
        with pytest.raises(ValueError, match="container"):
            self.configuration.use_container_job_activator(None)


def test_global_configuration_is_shared_instance():
    assert isinstance(global_configuration, GlobalConfiguration)
