import contextlib
import sys
import click
import zrlog
from autoinject import injector
from filebridge.boot.boot import init_filebridge
from filebridge.storage import BackendRegistry, FileManager
from filebridge.util import FileBridgeError


@click.group
@click.option("-v", "--verbose", is_flag=True, default=False, help="Verbose output")
def main(verbose: bool):
    """Filer CLI interacts with files across file systems.

    \b
      filer cp tmp/file.txt gs://bucket/file.txt
      filer cp -r tmp gs://bucket/
      filer ls -r gs://bucket/dir
    """
    init_filebridge("cli", verbose)


@main.command
@click.argument("source")
@click.argument("destination")
@click.option("-r", "--recursive", is_flag=True, default=False, help="Copy directories recursively")
@injector.inject
def cp(source: str, destination: str, recursive: bool, registry: BackendRegistry = None):
    """Copy files from source to destination."""
    with _exit_on_error():
        src, dst = registry.parse(source), registry.parse(destination)
        FileManager(registry).copy(src, dst, recursive)


@main.command
@click.argument("source")
@click.argument("destination")
@click.option("-r", "--recursive", is_flag=True, default=False, help="Move directories recursively")
@injector.inject
def mv(source: str, destination: str, recursive: bool, registry: BackendRegistry = None):
    """Move files from source to destination."""
    with _exit_on_error():
        src, dst = registry.parse(source), registry.parse(destination)
        FileManager(registry).move(src, dst, recursive)
        zrlog.get_logger("filebridge.cli").debug(f"Moved [{src}] to [{dst}]")


@main.command
@click.argument("directory", default=".")
@click.option("-r", "--recursive", is_flag=True, default=False, help="List files recursively")
@injector.inject
def ls(directory: str, recursive: bool, registry: BackendRegistry = None):
    """List files in a directory."""
    with _exit_on_error():
        uri = registry.parse(directory)
        for node in FileManager(registry).list(uri, recursive):
            click.echo(f"{node.uri.path}/" if node.is_dir else node.uri.path)


@main.command
@click.argument("path")
@click.option("-r", "--recursive", is_flag=True, default=False, help="Remove directories and their contents recursively")
@injector.inject
def rm(path: str, recursive: bool, registry: BackendRegistry = None):
    """Remove a file or directory."""
    with _exit_on_error():
        FileManager(registry).delete(registry.parse(path), recursive)


@main.command
@click.argument("path")
@injector.inject
def mkdir(path: str, registry: BackendRegistry = None):
    """Create a directory, including missing parents."""
    with _exit_on_error():
        FileManager(registry).mkdir(registry.parse(path))


@contextlib.contextmanager
def _exit_on_error():
    try:
        yield
    except FileBridgeError as ex:
        zrlog.get_logger("filebridge.cli").debug("Command failed", exc_info=True)
        click.echo(str(ex), err=True)
        sys.exit(1)
