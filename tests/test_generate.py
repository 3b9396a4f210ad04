import logging
import os
import sys

import pytest

from configmapper.objects import parse

from utils import TEST_ROOT, chdir, read_root_file

DB_ARGS = [
    'DB_HOST=mysql.example.com',
    'DB_PORT=3306',
    'DB_USER=admin',
    'DB_PASSWORD=securepassword',
    'DB_NAME=mydatabase',
]


def test_generate_stdout(cm, capsys):
    sys.argv = ['configmapper', 'generate', '-n', 'default', 'db-connection-config', *DB_ARGS]

    cm.main()

    assert capsys.readouterr().out == read_root_file('db-connection-config.yaml')


def test_generate_quiet_still_writes_manifest(cm, capsys):
    sys.argv = ['configmapper', '--quiet', 'generate', '-n', 'default', 'db-connection-config', *DB_ARGS]

    cm.main()

    assert capsys.readouterr().out == read_root_file('db-connection-config.yaml')


def test_generate_output_file(cm, capsys, tmp_path):
    output = str(tmp_path / 'cm.yaml')
    sys.argv = ['configmapper', 'generate', '-n', 'default', 'db-connection-config', *DB_ARGS, '-o', output]

    cm.main()

    with open(output) as fp:
        assert fp.read() == read_root_file('db-connection-config.yaml')
    assert capsys.readouterr().out.strip() == '{} created.'.format(output)


def test_generate_env_namespace(cm, capsys):
    sys.argv = ['configmapper', 'generate', '-e', 'stable', 'db', 'DB_HOST=x']

    with chdir(TEST_ROOT):
        cm.main()

    assert parse(capsys.readouterr().out).namespace == 'foo-stable'


def test_generate_config_default_namespace(cm, capsys):
    sys.argv = ['configmapper', 'generate', 'db', 'DB_HOST=x']

    with chdir(TEST_ROOT):
        cm.main()

    assert parse(capsys.readouterr().out).namespace == 'foo-dev'


def test_generate_namespace_and_env_exclusive(cm, capsys):
    sys.argv = ['configmapper', 'generate', '-n', 'foo', '-e', 'dev', 'db', 'DB_HOST=x']

    with chdir(TEST_ROOT):
        with pytest.raises(SystemExit) as ex:
            cm.main()

    assert ex.value.code == 2


def test_generate_empty_name(cm, capsys):
    sys.argv = ['configmapper', 'generate', '', 'DB_HOST=x']

    with pytest.raises(SystemExit) as ex:
        cm.main()

    assert ex.value.code == -1
    assert capsys.readouterr().out.strip() == 'Invalid input: name must not be empty'


def test_generate_empty_key(cm, capsys):
    sys.argv = ['configmapper', 'generate', 'db', '=x']

    with pytest.raises(SystemExit) as ex:
        cm.main()

    assert ex.value.code == -1
    assert 'keys must not be empty' in capsys.readouterr().out


def test_generate_malformed_pair(cm, capsys):
    sys.argv = ['configmapper', 'generate', 'db', 'DB_HOST']

    with pytest.raises(SystemExit) as ex:
        cm.main()

    assert ex.value.code == -1
    assert "Invalid entry: 'DB_HOST' is not in KEY=VALUE format" in capsys.readouterr().out


def test_generate_value_with_equals(cm, capsys):
    sys.argv = ['configmapper', 'generate', 'db', 'DB_DSN=mysql://host/db?ssl=true']

    cm.main()

    assert parse(capsys.readouterr().out).entries == {'DB_DSN': 'mysql://host/db?ssl=true'}


def test_generate_duplicate_key_last_wins(cm, capsys, caplog):
    sys.argv = ['configmapper', 'generate', 'db', 'DB_HOST=first', 'DB_PORT=3306', 'DB_HOST=second']

    with caplog.at_level(logging.WARNING):
        cm.main()

    assert parse(capsys.readouterr().out).entries == {'DB_HOST': 'second', 'DB_PORT': '3306'}
    assert 'DB_HOST' in caplog.text


def test_generate_no_entries_warns(cm, capsys, caplog):
    sys.argv = ['configmapper', 'generate', 'db']

    with caplog.at_level(logging.WARNING):
        cm.main()

    assert parse(capsys.readouterr().out).entries == {}
    assert 'has no entries' in caplog.text


def test_generate_from_file(cm, capsys):
    sys.argv = ['configmapper', 'generate', 'db', 'DB_HOST=x', '--from-file', 'db.conf=templates/db.conf']

    with chdir(TEST_ROOT):
        cm.main()

    assert parse(capsys.readouterr().out).entries == {
        'DB_HOST': 'x',
        'db.conf': 'host={{DB_HOST}}\nport={{DB_PORT}}\n',
    }


def test_generate_from_file_render(cm, capsys):
    sys.argv = [
        'configmapper', 'generate', 'db', 'DB_HOST=db&co.example.com', 'DB_PORT=3306',
        '--from-file', 'db.conf=templates/db.conf', '--render',
    ]

    with chdir(TEST_ROOT):
        cm.main()

    assert parse(capsys.readouterr().out).entries['db.conf'] == 'host=db&co.example.com\nport=3306\n'


def test_generate_from_missing_file(cm, capsys):
    sys.argv = ['configmapper', 'generate', 'db', '--from-file', 'db.conf=missing.conf']

    with chdir(TEST_ROOT):
        with pytest.raises(SystemExit) as ex:
            cm.main()

    assert ex.value.code == -1
    assert capsys.readouterr().out.startswith('Cannot read missing.conf')


def test_generate_labels(cm, capsys):
    sys.argv = [
        'configmapper', 'generate', 'db', 'DB_HOST=x',
        '--label', 'app=shop', '--annotation', 'owner=team-db', '--immutable',
    ]

    cm.main()

    doc = parse(capsys.readouterr().out)
    assert doc.labels == {'app': 'shop'}
    assert doc.annotations == {'owner': 'team-db'}
    assert doc.immutable is True


def test_generated_file_validates(cm, capsys, tmp_path):
    output = os.path.join(str(tmp_path), 'cm.yaml')
    sys.argv = ['configmapper', 'generate', '-n', 'default', 'db-connection-config', *DB_ARGS, '-o', output]
    cm.main()
    capsys.readouterr()

    sys.argv = ['configmapper', 'validate', output]
    cm.main()

    assert capsys.readouterr().out.strip() == 'OK: {}'.format(output)


def test_generate_without_namespace_option(cm, capsys, tmp_path):
    sys.argv = ['configmapper', 'generate', 'db-connection-config', *DB_ARGS]

    with chdir(str(tmp_path)):
        cm.main()

    assert capsys.readouterr().out == read_root_file('db-connection-config.yaml')


def test_generate_namespace_option(cm, capsys, tmp_path):
    sys.argv = ['configmapper', 'generate', '--namespace', 'shop', 'db-connection-config', *DB_ARGS]

    with chdir(str(tmp_path)):
        cm.main()

    doc = parse(capsys.readouterr().out)
    assert doc.namespace == 'shop'
    assert doc.name == 'db-connection-config'


def test_generate_env_without_namespace(cm, capsys):
    sys.argv = ['configmapper', 'generate', '-e', 'legacy', 'db', 'DB_HOST=x']

    with chdir(TEST_ROOT):
        with pytest.raises(SystemExit) as ex:
            cm.main()

    assert ex.value.code == -1
    assert capsys.readouterr().out.strip() == 'Environment legacy has no k8s_namespace in configmapper_conf.py'


def test_generate_from_undecodable_file(cm, capsys, tmp_path):
    with open(os.path.join(str(tmp_path), 'db.conf'), 'wb') as fp:
        fp.write(b'host=\xff\xfe\n')
    sys.argv = ['configmapper', 'generate', 'db', '--from-file', 'db.conf=db.conf']

    with chdir(str(tmp_path)):
        with pytest.raises(SystemExit) as ex:
            cm.main()

    assert ex.value.code == -1
    assert capsys.readouterr().out.startswith('Cannot read db.conf: not valid UTF-8')


def test_generate_from_binary_file(cm, capsys, tmp_path):
    with open(os.path.join(str(tmp_path), 'ca.der'), 'wb') as fp:
        fp.write(b'\x00\x01\x02\xff')
    sys.argv = ['configmapper', 'generate', 'db', 'DB_HOST=x', '--from-binary-file', 'ca.der=ca.der']

    with chdir(str(tmp_path)):
        cm.main()

    doc = parse(capsys.readouterr().out)
    assert doc.entries == {'DB_HOST': 'x'}
    assert doc.binary_data == {'ca.der': 'AAEC/w=='}


def test_generate_binary_key_in_data(cm, capsys, tmp_path):
    with open(os.path.join(str(tmp_path), 'ca.der'), 'wb') as fp:
        fp.write(b'\x00')
    sys.argv = ['configmapper', 'generate', 'db', 'ca.der=x', '--from-binary-file', 'ca.der=ca.der']

    with chdir(str(tmp_path)):
        with pytest.raises(SystemExit) as ex:
            cm.main()

    assert ex.value.code == -1
    assert 'cannot be in both data and binary data' in capsys.readouterr().out
