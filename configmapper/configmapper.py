#!/usr/bin/python3

import argparse
import glob
import importlib.util
import logging
import os
import shutil
import subprocess
import sys
import tempfile
from typing import Any, Dict, List, Optional, Tuple

import argcomplete
import pystache

from .examples import EXAMPLE_CONFIGMAPPER_CONF
from .exceptions import InvalidInput, SchemaError
from .objects import ConfigMap, build, parse, serialize
from .utils import NamespaceWithDefaultValue, split_pair
from .validator import validate

ENVS_CONFIG_NAME = 'configmapper_conf'
READ_STDIN = '-'

VERSION = '1.0.0'

logger = logging.getLogger(__name__)


class ConfigMapper:
    """
    Tool generating, validating and applying Kubernetes ConfigMaps.
    """

    def __init__(self):
        self.envs_config_module = None  # configuration of environments (namespaces, contexts)
        self.args = None

    def _input_text(self, message: str, default: str = '') -> str:
        text = input("{}{}: ".format(message, " [{}]".format(default) if default else ""))
        return text or default

    def _out(self, *args) -> None:
        if not self.args or not self.args.quiet:
            print(*args)

    def _create_conf_file(self, outfile: str, template: str, data: Dict[str, str] = None) -> None:
        with open(outfile, 'w') as fp:
            content = template.format(**data) if data else template
            fp.write(content)

    def init_env(self) -> None:
        """
        Prepares example configuration of environments in given directory.
        """
        os.makedirs(self.args.dir, exist_ok=True)
        outfile = os.path.join(self.args.dir, '{}.py'.format(ENVS_CONFIG_NAME))
        if os.path.exists(outfile):
            self.fail("Project already contains {}.".format(outfile))

        k8s_prefix = os.path.basename(os.path.abspath(self.args.dir))
        k8s_context = k8s_prefix
        if not self.args.noninteractive:
            k8s_prefix = self._input_text("Namespace prefix", k8s_prefix)
            k8s_context = self._input_text("Kubernetes context of stable environment", k8s_context)

        self._create_conf_file(outfile, EXAMPLE_CONFIGMAPPER_CONF, {
            'k8s_prefix': k8s_prefix,
            'k8s_context': k8s_context,
        })
        self._out("{} created.".format(outfile))

    def _import_envs_config(self) -> None:
        """
        Reads configuration of environments, looks up from current dir to the root.
        """
        dir = os.path.abspath(os.getcwd())

        while True:
            path = os.path.join(dir, '{}.py'.format(ENVS_CONFIG_NAME))
            if os.path.isfile(path):
                spec = importlib.util.spec_from_file_location(ENVS_CONFIG_NAME, path)
                module = importlib.util.module_from_spec(spec)
                spec.loader.exec_module(module)
                self.envs_config_module = module
                logger.debug('Loaded environments from %s', path)
                break

            # try parent dir.
            parent = os.path.dirname(dir)
            if parent == dir:
                break
            dir = parent

    @property
    def envs(self) -> Dict[str, Dict[str, Any]]:
        return getattr(self.envs_config_module, 'ENVS', {})

    def _env_value(self, key: str) -> Optional[str]:
        if not self.args.env:
            return None
        return self.envs[self.args.env].get(key)

    def cmd(self, command: List[str]) -> subprocess.CompletedProcess:
        """
        Runs command as subprocess.
        """
        if self.args.debug:
            self._out("CALL: ", ' '.join(command))
        if self.args.dryrun:
            self._out("CALL: ", ' '.join(command))
            return subprocess.CompletedProcess(command, 0)

        return subprocess.run(command)

    def fail(self, msg: str) -> None:
        """
        Exits with error message (-1)
        """
        self._out(msg)
        sys.exit(-1)

    def _namespace(self) -> Optional[str]:
        if self.args.namespace:
            return self.args.namespace
        if self.args.env:
            namespace = self._env_value('k8s_namespace')
            if not namespace:
                self.fail("Environment {} has no k8s_namespace in {}.py".format(self.args.env, ENVS_CONFIG_NAME))
            return namespace
        return getattr(self.envs_config_module, 'DEFAULT_NAMESPACE', None)

    def _parse_pairs(self, pairs: Optional[List[str]], option: str) -> Dict[str, str]:
        res = {}  # type: Dict[str, str]
        for pair in pairs or []:
            try:
                key, value = split_pair(pair)
            except ValueError as ex:
                self.fail("Invalid {}: {}".format(option, ex))
            if key in res:
                logger.warning('%s `%s` given more than once, using the last value', option, key)
            res[key] = value
        return res

    def _render_file(self, filename: str, context: Dict[str, str]) -> str:
        """
        Reads file, renders it as mustache template when --render is given.
        """
        content = self._read_text(filename)

        if not self.args.render:
            return content

        # values are config, not HTML
        renderer = pystache.Renderer(escape=lambda u: u)
        template = pystache.parse(content)
        return renderer.render(template, context)

    def _collect_entries(self) -> Dict[str, str]:
        entries = self._parse_pairs(self.args.entries, 'entry')
        context = dict(entries)

        for key, filename in self._parse_pairs(self.args.from_file, '--from-file').items():
            if key in entries:
                logger.warning('entry `%s` given more than once, using the last value', key)
            entries[key] = self._render_file(filename, context)

        return entries

    def generate(self) -> None:
        """
        Builds ConfigMap from command line and writes it out.
        """
        entries = self._collect_entries()
        binary_data = {
            key: self._read_binary(filename)
            for key, filename in self._parse_pairs(self.args.from_binary_file, '--from-binary-file').items()
        }
        if not entries and not binary_data:
            logger.warning('ConfigMap %s has no entries', self.args.name)

        try:
            doc = build(
                self.args.name,
                self._namespace(),
                entries,
                binary_data=binary_data,
                labels=self._parse_pairs(self.args.label, '--label'),
                annotations=self._parse_pairs(self.args.annotation, '--annotation'),
                immutable=self.args.immutable,
            )
        except InvalidInput as ex:
            self.fail("Invalid input: {}".format(ex.reason))

        text = serialize(doc)
        if self.args.output:
            with open(self.args.output, 'w', encoding='utf8') as fp:
                fp.write(text)
            self._out("{} created.".format(self.args.output))
        else:
            sys.stdout.write(text)

    def _read_text(self, filename: str) -> str:
        """
        Reads UTF-8 text file, "-" reads stdin. Fails on unreadable or undecodable input.
        """
        try:
            if filename == READ_STDIN:
                return sys.stdin.read()
            with open(filename, 'r', encoding='utf8') as fp:
                return fp.read()
        except UnicodeDecodeError as ex:
            self.fail("Cannot read {}: not valid UTF-8 ({})".format(filename, ex.reason))
        except OSError as ex:
            self.fail("Cannot read {}: {}".format(filename, ex.strerror))

    def _read_binary(self, filename: str) -> bytes:
        try:
            with open(filename, 'rb') as fp:
                return fp.read()
        except OSError as ex:
            self.fail("Cannot read {}: {}".format(filename, ex.strerror))

    def _load_valid_manifest(self, filename: str) -> Tuple[ConfigMap, str]:
        """
        Reads and validates manifest, fails on the first violated rule.
        Returns document together with the text it was read from.
        """
        text = self._read_text(filename)
        try:
            doc = parse(text)
            validate(doc)
        except SchemaError as ex:
            self.fail("FAIL: {}: {}".format(filename, ex))
        return doc, text

    def validate_manifest(self) -> None:
        self._load_valid_manifest(self.args.file)
        self._out("OK: {}".format(self.args.file))

    def kubectl_apply(self, filename: str, name: str) -> int:
        """
        Apply ConfigMap yaml or save into output dir, when specified on command line.
        """
        if self.args.apply_output_dir:
            dest_filename = os.path.join(self.args.apply_output_dir, "{}_configmap.yaml".format(name))
            if self.args.dryrun:
                self._out("CALL: ", "cp {} {}".format(filename, dest_filename))
                return 0
            os.makedirs(self.args.apply_output_dir, exist_ok=True)
            shutil.copy(filename, dest_filename)
            self._out("{} created.".format(dest_filename))
            return 0

        command = ["kubectl"]
        context = self._env_value('k8s_context')
        if context:
            command += ["--context", context]
        command += ["apply", "-f", filename]

        return self.cmd(command).returncode

    def apply_manifest(self) -> None:
        """
        Validates manifest and hands it to kubectl. kubectl errors are passed through as they are.
        """
        doc, text = self._load_valid_manifest(self.args.file)

        if self.args.file == READ_STDIN:
            # kubectl gets the manifest as given, including fields ConfigMap does not model
            with tempfile.NamedTemporaryFile('w', suffix='.yaml', encoding='utf8') as temp_file:
                temp_file.write(text)
                temp_file.flush()
                returncode = self.kubectl_apply(temp_file.name, doc.name)
        else:
            returncode = self.kubectl_apply(self.args.file, doc.name)

        if returncode != 0:
            sys.exit(returncode)

    def output_completion(self):
        self._out(argcomplete.shellcode(
            ['configmapper'],
            False,
            'bash',
        ))

    def do_command(self, command: str = None) -> None:
        command = command or self.args.command

        if command == "init":
            self.init_env()
        elif command == "generate":
            self.generate()
        elif command == "validate":
            self.validate_manifest()
        elif command == "apply":
            self.apply_manifest()
        elif command == "version":
            self._out(VERSION)
        elif command == "completion":
            self.output_completion()

    @staticmethod
    def _manifest_completer(**kwargs):
        return sorted(glob.glob('*.yaml') + glob.glob('*.yml'))

    def get_arg_parser(self) -> argparse.ArgumentParser:
        environments = tuple(self.envs.keys())

        parser = argparse.ArgumentParser(description=self.__class__.__doc__)
        parser.add_argument('--debug', action='store_true')
        parser.add_argument('--noninteractive', action='store_true', help='Does not ask questions')
        parser.add_argument('--quiet', action='store_true', help='Suppress output')
        parser.add_argument('--dryrun', action='store_true', help='Just pretends, no changes are actually done')

        subparsers = parser.add_subparsers(title='commands', dest='command')

        init_parser = subparsers.add_parser('init', help='prepares {}.py in project'.format(ENVS_CONFIG_NAME))
        init_parser.add_argument('dir', help='project directory')

        generate_parser = subparsers.add_parser('generate', help='generates ConfigMap manifest')
        generate_parser.add_argument('name', help='name of the ConfigMap')
        generate_parser.add_argument('entries', help='KEY=VALUE pairs', nargs='*', metavar='KEY=VALUE')
        namespace_group = generate_parser.add_mutually_exclusive_group()
        namespace_group.add_argument('-n', '--namespace', help='namespace, "default" when not given')
        namespace_group.add_argument(
            '-e', '--env', help='take namespace from environment',
            choices=environments,
        )
        generate_parser.add_argument(
            '--from-file', help='use file content as value of KEY', action='append', metavar='KEY=PATH',
        )
        generate_parser.add_argument(
            '--from-binary-file', help='use file content as base64 encoded binaryData of KEY',
            action='append', metavar='KEY=PATH',
        )
        generate_parser.add_argument(
            '--render', help='render --from-file files as mustache templates using the entries',
            action='store_true',
        )
        generate_parser.add_argument('--label', help='metadata label', action='append', metavar='KEY=VALUE')
        generate_parser.add_argument(
            '--annotation', help='metadata annotation', action='append', metavar='KEY=VALUE',
        )
        generate_parser.add_argument('--immutable', help='mark ConfigMap as immutable', action='store_true')
        generate_parser.add_argument('-o', '--output', help='write manifest to file instead of stdout')

        validate_parser = subparsers.add_parser('validate', help='validates ConfigMap manifest')
        validate_parser.add_argument(
            'file', help='manifest file, "-" for stdin',
        ).completer = self._manifest_completer

        apply_parser = subparsers.add_parser('apply', help='validates ConfigMap manifest and applies it')
        apply_parser.add_argument(
            'file', help='manifest file, "-" for stdin',
        ).completer = self._manifest_completer
        apply_parser.add_argument(
            '-e', '--env', help='use kubectl context of environment',
            choices=environments,
        )
        apply_parser.add_argument(
            '--apply-output-dir',
            help="Instead of apply save validated yaml file to specified directory",
            default=None,
        )

        subparsers.add_parser('version', help='print version of configmapper')

        subparsers.add_parser('completion', help='list commands for bash completion')

        argcomplete.autocomplete(parser)

        return parser

    def main(self) -> None:
        self._import_envs_config()

        parser = self.get_arg_parser()

        namespace = parser.parse_args()
        self.args = NamespaceWithDefaultValue(namespace)

        logging.basicConfig(
            level=logging.DEBUG if self.args.debug else logging.WARNING,
            format='%(levelname)s: %(message)s',
        )

        if not self.args.command:
            parser.print_help()
            return

        self.do_command()


def run():
    tool = ConfigMapper()
    tool.main()
