"""
CLI メインモジュール

devcontainer.tomlを読み込み、サブコマンドをdockerコマンドに変換して実行する
コマンドラインインターフェースを提供します。
"""

import sys
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any, Callable, Optional

import click
from rich.console import Console
from rich.json import JSON
from rich.markup import escape
from rich.panel import Panel

from . import __version__
from .config import DevcontainerConfig, DevcontainerError, load_config
from .container import (
    RunOptions,
    build_container,
    down_container,
    exec_in_container,
    stop_container,
    up_container,
)
from .utils import find_devcontainer_config

# Richコンソールのインスタンスを作成（カラフルな出力用）
console = Console()
err_console = Console(stderr=True)

CONTEXT_SETTINGS = {"help_option_names": ["-h", "--help"]}

# exec: 後続の引数をオプションとして解釈せずにそのまま受け取る
PASSTHROUGH_SETTINGS = {"ignore_unknown_options": True, "allow_interspersed_args": False}


def _report_unknown(name: str) -> None:
    err_console.print(
        f"devcontainer: unknown command or option: {escape(name)}",
        soft_wrap=True,
        emoji=False,
    )
    err_console.print()
    err_console.print("Run 'devcontainer --help' for more information")


class _ReportUnknownOptionMixin:
    """
    未知のオプションをclickのデフォルト（終了コード2）ではなく、
    従来のdevcontainerコマンドと同じメッセージと終了コード1で報告する。
    """

    def parse_args(self, ctx: click.Context, args: list[str]) -> list[str]:
        try:
            return super().parse_args(ctx, args)  # type: ignore[misc]
        except click.NoSuchOption as e:
            _report_unknown(e.option_name)
            ctx.exit(1)


class DevcontainerCommand(_ReportUnknownOptionMixin, click.Command):
    """未知のオプションを終了コード1で報告するサブコマンド"""


class DevcontainerGroup(_ReportUnknownOptionMixin, click.Group):
    """未知のサブコマンドやオプションを終了コード1で報告するコマンドグループ"""

    def resolve_command(
        self, ctx: click.Context, args: list[str]
    ) -> tuple[Optional[str], Optional[click.Command], list[str]]:
        if self.get_command(ctx, args[0]) is None:
            _report_unknown(args[0])
            ctx.exit(1)
        return super().resolve_command(ctx, args)


@dataclass
class Session:
    """1回の起動で共有する設定ファイルの場所と実行オプション"""

    workspace: Path
    config_path: Optional[Path]
    options: RunOptions

    def resolve_config_path(self) -> Path:
        if self.config_path is not None:
            return self.config_path
        return find_devcontainer_config(self.workspace)

    def load_config(self) -> DevcontainerConfig:
        return load_config(self.resolve_config_path())

    def run_options(self, dry_run: bool, verbose: bool) -> RunOptions:
        """サブコマンド側で指定されたフラグをグループのオプションに重ねる。"""
        return replace(
            self.options,
            dry_run=self.options.dry_run or dry_run,
            verbose=self.options.verbose or verbose,
        )


@contextmanager
def _report_errors(command: str) -> Iterator[None]:
    """
    DevcontainerErrorを1行のメッセージとして表示し、対応する終了コードで終了する。
    """
    try:
        yield
    except DevcontainerError as e:
        err_console.print(
            f"[bold red]devcontainer {command}:[/bold red] {escape(e.message)}",
            soft_wrap=True,
            emoji=False,
        )
        if e.hint:
            err_console.print(f" {escape(e.hint)}", soft_wrap=True, emoji=False)
        sys.exit(e.exit_code)


def _warn_ignored_args(command: str, args: tuple[str, ...]) -> None:
    if args:
        console.print(
            f"[yellow]devcontainer {command}: ignoring extra arguments: "
            f"{escape(' '.join(args))}[/yellow]",
            soft_wrap=True,
            emoji=False,
        )


def _run_flags(func: Callable[..., None]) -> Callable[..., None]:
    """サブコマンドの後ろでも --dry-run / --verbose を受け付ける。"""
    func = click.option("--verbose", is_flag=True, help="デバッグ情報を表示")(func)
    func = click.option(
        "--dry-run", is_flag=True, help="実行するコマンドを表示のみ（実際の実行は行わない）"
    )(func)
    return func


@click.group(
    cls=DevcontainerGroup,
    invoke_without_command=True,
    context_settings=CONTEXT_SETTINGS,
)
@click.version_option(version=__version__)
@click.option(
    "--workspace",
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    default=".",
    envvar="DEVCONTAINER_WORKSPACE",
    help="ワークスペースフォルダ（.devcontainer/を含むディレクトリ）",
)
@click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    envvar="DEVCONTAINER_CONFIG",
    help="設定ファイル（省略時は .devcontainer/devcontainer.toml）",
)
@click.option(
    "--docker",
    default="docker",
    show_default=True,
    envvar="DEVCONTAINER_DOCKER",
    help="使用するコンテナ管理コマンド",
)
@click.option("--dry-run", is_flag=True, help="実行するコマンドを表示のみ（実際の実行は行わない）")
@click.option("--verbose", is_flag=True, help="デバッグ情報を表示")
@click.pass_context
def cli(
    ctx: click.Context,
    workspace: Path,
    config_path: Optional[Path],
    docker: str,
    dry_run: bool,
    verbose: bool,
) -> None:
    """
    devcontainer.tomlに基づいて開発コンテナを管理する。

    image、build、composeのいずれか1つで記述されたコンテナを
    dockerコマンドでビルド・起動・操作します。
    """
    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())
        return

    ctx.obj = Session(
        workspace=workspace,
        config_path=config_path,
        options=RunOptions(docker=docker, cwd=workspace, dry_run=dry_run, verbose=verbose),
    )


@cli.command(cls=DevcontainerCommand)
@click.argument("args", nargs=-1, type=click.UNPROCESSED)
@_run_flags
@click.pass_obj
def build(
    session: Session, args: tuple[str, ...], dry_run: bool, verbose: bool
) -> None:
    """
    コンテナイメージをビルド（またはpull）する。
    """
    with _report_errors("build"):
        config = session.load_config()
        _warn_ignored_args("build", args)
        build_container(config, session.run_options(dry_run, verbose))


@cli.command(cls=DevcontainerCommand)
@click.argument("args", nargs=-1, type=click.UNPROCESSED)
@_run_flags
@click.pass_obj
def up(
    session: Session, args: tuple[str, ...], dry_run: bool, verbose: bool
) -> None:
    """
    開発コンテナをバックグラウンドで起動する。

    composeの場合は docker compose up -d、
    それ以外は名前・ボリューム・ポートを指定して docker run -d を実行します。
    """
    with _report_errors("up"):
        config = session.load_config()
        _warn_ignored_args("up", args)
        up_container(config, session.run_options(dry_run, verbose))


@cli.command(context_settings=PASSTHROUGH_SETTINGS)
@click.argument("command", nargs=-1, type=click.UNPROCESSED)
@_run_flags
@click.pass_obj
def exec(
    session: Session, command: tuple[str, ...], dry_run: bool, verbose: bool
) -> None:
    """
    コンテナ内でコマンドを対話的に実行する。

    コマンドを省略した場合は sh を起動します。
    compose構成では [compose].service の指定が必要です。
    """
    with _report_errors("exec"):
        config = session.load_config()
        exec_in_container(config, list(command), session.run_options(dry_run, verbose))


@cli.command(cls=DevcontainerCommand)
@click.argument("args", nargs=-1, type=click.UNPROCESSED)
@_run_flags
@click.pass_obj
def stop(
    session: Session, args: tuple[str, ...], dry_run: bool, verbose: bool
) -> None:
    """
    開発コンテナを停止する。
    """
    with _report_errors("stop"):
        config = session.load_config()
        _warn_ignored_args("stop", args)
        stop_container(config, session.run_options(dry_run, verbose))


@cli.command(cls=DevcontainerCommand)
@click.argument("args", nargs=-1, type=click.UNPROCESSED)
@_run_flags
@click.pass_obj
def down(
    session: Session, args: tuple[str, ...], dry_run: bool, verbose: bool
) -> None:
    """
    開発コンテナを停止・削除する。
    """
    with _report_errors("down"):
        config = session.load_config()
        _warn_ignored_args("down", args)
        down_container(config, session.run_options(dry_run, verbose))


@cli.command(cls=DevcontainerCommand)
@click.argument("args", nargs=-1, type=click.UNPROCESSED)
@click.pass_obj
def read(session: Session, args: tuple[str, ...]) -> None:
    """
    読み込んだ設定を表示する（dockerは実行しない）。
    """
    with _report_errors("read"):
        config_path = session.resolve_config_path()
        config = load_config(config_path)
        _warn_ignored_args("read", args)

    data: dict[str, Any] = config.model_dump(mode="json")
    console.print(Panel(JSON.from_data(data), title=escape(str(config_path))))


@cli.command("help")
@click.pass_context
def help_command(ctx: click.Context) -> None:
    """
    このヘルプを表示する。
    """
    assert ctx.parent is not None
    click.echo(ctx.parent.get_help())


if __name__ == "__main__":
    cli()
