import sys
import os
from unittest import mock

import pytest


sys.path.insert(
    0,
    os.path.abspath(
        os.path.join(
            os.path.dirname(__file__),
            '..'
        )
    )
)

from configmapper.configmapper import ConfigMapper


@pytest.fixture
def cm():
    cm = ConfigMapper()
    cm.cmd = mock.Mock()
    cm.cmd.return_value.returncode = 0
    return cm
