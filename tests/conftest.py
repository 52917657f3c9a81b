import os
import sys

import pytest

# Add the parent directory to the path so we can import the modules
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))


class ScriptedExecutor:
    """
    Stand-in for CommandExecutor that answers from canned tool output.

    ``responses`` maps a command tuple to stdout, or to a full
    (success, stdout, stderr) tuple. Unknown commands fail with no output.
    """

    def __init__(self, responses=None, binaries=None, files=None):
        self.responses = dict(responses or {})
        self.binaries = None if binaries is None else set(binaries)
        self.files = dict(files or {})
        self.calls = []

    def which(self, binary):
        if self.binaries is None or binary in self.binaries:
            return f"/usr/sbin/{binary}"
        return None

    def first_available(self, *binaries):
        for binary in binaries:
            if self.which(binary):
                return binary
        return None

    def run(self, command):
        self.calls.append(list(command))
        response = self.responses.get(tuple(command))
        if response is None:
            return False, "", "no such command"
        if isinstance(response, tuple):
            return response
        return True, response, ""

    def read_file(self, path):
        return self.files.get(path)


@pytest.fixture
def scripted_executor():
    """Factory for executors answering from canned output."""
    return ScriptedExecutor
