from contextlib import contextmanager
import os

TEST_ROOT = os.path.join(os.path.dirname(os.path.abspath(__file__)), 'test_roots', 'simple')


@contextmanager
def chdir(path):
    orig_dir = os.getcwd()
    try:
        os.chdir(path)
        yield
    finally:
        os.chdir(orig_dir)


def read_root_file(filename):
    with open(os.path.join(TEST_ROOT, filename), 'r') as fp:
        return fp.read()
