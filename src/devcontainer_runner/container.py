"""
コンテナ操作モジュール

設定からdockerコマンドの引数リストを組み立て、同期的に実行する機能を提供します。
"""

from __future__ import annotations

import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from rich.console import Console
from rich.markup import escape

from .config import (
    BuildConfig,
    ComposeConfig,
    ConfigValidationError,
    DevcontainerConfig,
    DevcontainerError,
    ImageConfig,
)
from .utils import format_command

console = Console()

DEFAULT_EXEC_COMMAND = ["sh"]


class LaunchError(DevcontainerError):
    """dockerコマンドを起動できなかった場合に発生する例外。"""


class ExternalFailureError(DevcontainerError):
    """
    dockerコマンドが0以外の終了コードで終了した場合に発生する例外。

    exit_codeには外部コマンドの終了コードを保持する。
    シグナルで終了した場合など終了コードがない場合は1になる。
    """

    def __init__(self, message: str, returncode: int) -> None:
        super().__init__(message)
        self.returncode = returncode
        self.exit_code = returncode if returncode > 0 else 1


@dataclass(frozen=True)
class RunOptions:
    """外部コマンド実行時のオプション"""

    docker: str = "docker"
    cwd: Optional[Path] = None
    dry_run: bool = False
    verbose: bool = False


def describe_command(cmd: list[str]) -> str:
    """
    エラーメッセージ用にコマンドの概要を返す。

    例: ["docker", "compose", "-f", "a.yml", "up", "-d"] -> "docker compose up"
    """
    words = [Path(cmd[0]).name]
    rest = cmd[1:]

    if rest[:1] == ["compose"]:
        words.append("compose")
        rest = rest[1:]
        # -f <file> の組をスキップ
        while rest[:1] == ["-f"]:
            rest = rest[2:]

    if rest:
        words.append(rest[0])

    return " ".join(words)


def run_command(cmd: list[str], context: str, options: RunOptions) -> None:
    """
    コマンドを表示してから実行し、終了を待つ。

    標準入出力は継承するため、対話的なセッションもそのまま動作する。

    Args:
        cmd: 実行するコマンドのリスト
        context: 表示用の接頭辞（例: "devcontainer up"）
        options: 実行オプション

    Raises:
        LaunchError: コマンドを起動できなかった場合
        ExternalFailureError: コマンドが0以外で終了した場合
    """
    console.print(
        f"[cyan]{escape(context)}: running[/cyan] {escape(format_command(cmd))}",
        soft_wrap=True,
        emoji=False,
    )

    if options.dry_run:
        return

    try:
        result = subprocess.run(cmd, cwd=options.cwd)
    except OSError as e:
        raise LaunchError(f"Failed to execute {describe_command(cmd)}: {e}") from e

    if options.verbose:
        console.print(f"[dim]デバッグ情報: returncode={result.returncode}[/dim]")

    if result.returncode != 0:
        raise ExternalFailureError(
            f"{describe_command(cmd)} failed with exit code {result.returncode}",
            result.returncode,
        )


def pull_command(docker: str, image: ImageConfig) -> list[str]:
    return [docker, "pull", image.name]


def build_command(docker: str, build: BuildConfig) -> list[str]:
    """docker build の引数リストを組み立てる。ビルド引数はキー順。"""
    cmd = [docker, "build", "-f", build.dockerfile, "-t", build.name]

    if build.target is not None:
        cmd.extend(["--target", build.target])

    for key, value in build.sorted_args():
        cmd.extend(["--build-arg", f"{key}={value}"])

    cmd.append(build.context)
    return cmd


def compose_command(docker: str, compose: ComposeConfig, *args: str) -> list[str]:
    """
    docker compose の引数リストを組み立てる。

    composeファイルは指定順に -f で渡し、その後にサブコマンドを続ける。
    """
    cmd = [docker, "compose"]
    for file in compose.files:
        cmd.extend(["-f", file])
    cmd.extend(args)
    return cmd


def docker_run_command(docker: str, config: DevcontainerConfig, image: str) -> list[str]:
    """
    単一コンテナを起動する docker run の引数リストを組み立てる。

    順序: コンテナ名、ユーザー、作業ディレクトリ、追加引数、
    ボリューム、ポート（app → forward）、イメージ
    """
    cmd = [docker, "run", "-d", "--name", config.name]

    if config.run:
        if config.run.user is not None:
            cmd.extend(["--user", config.run.user])
        cmd.extend(["--workdir", config.run.workdir])
        # 追加の引数はそのまま渡す
        cmd.extend(config.run.run_args)

    for volume in config.volume_specs():
        cmd.extend(["-v", volume])

    if config.ports:
        for mapping in config.ports.mappings():
            cmd.extend(["-p", mapping])

    cmd.append(image)
    return cmd


def exec_command(docker: str, config: DevcontainerConfig, command: list[str]) -> list[str]:
    """
    対話的にコマンドを実行する docker (compose) exec の引数リストを組み立てる。

    commandが空の場合は"sh"を起動する。

    Raises:
        ConfigValidationError: compose構成でserviceが指定されていない場合
    """
    command = command or DEFAULT_EXEC_COMMAND

    if config.compose:
        if config.compose.service is None:
            raise ConfigValidationError(
                "[compose].service is required to know which compose service to exec into"
            )
        service = config.compose.service
        return compose_command(docker, config.compose, "exec", "-it", service, *command)

    return [docker, "exec", "-it", config.name, *command]


def build_container(config: DevcontainerConfig, options: RunOptions) -> None:
    """
    コンテナイメージを用意する。

    image: docker pull、build: docker build、compose: docker compose build

    Raises:
        ConfigValidationError: コンテナ種別が1つに定まらない場合
    """
    kind = config.container_kind()

    if isinstance(kind, ImageConfig):
        cmd = pull_command(options.docker, kind)
    elif isinstance(kind, BuildConfig):
        cmd = build_command(options.docker, kind)
    else:
        cmd = compose_command(options.docker, kind, "build")

    run_command(cmd, "devcontainer build", options)


def up_container(config: DevcontainerConfig, options: RunOptions) -> None:
    """
    コンテナをバックグラウンドで起動する。

    compose構成ではサービス（指定時のみ）を docker compose up -d で、
    それ以外はイメージ名またはビルドタグを docker run -d で起動する。

    Raises:
        ConfigValidationError: コンテナ種別が1つに定まらない場合
    """
    kind = config.container_kind()

    if isinstance(kind, ComposeConfig):
        args = ["up", "-d"]
        if kind.service is not None:
            args.append(kind.service)
        cmd = compose_command(options.docker, kind, *args)
    else:
        # ImageConfigのnameはイメージ参照、BuildConfigのnameはビルドタグ
        cmd = docker_run_command(options.docker, config, kind.name)

    run_command(cmd, "devcontainer up", options)


def exec_in_container(config: DevcontainerConfig, command: list[str], options: RunOptions) -> None:
    """コンテナ内でコマンド（省略時はsh）を対話的に実行する。"""
    cmd = exec_command(options.docker, config, command)
    run_command(cmd, "devcontainer exec", options)


def stop_container(config: DevcontainerConfig, options: RunOptions) -> None:
    """composeスタック、または名前付きコンテナを停止する。"""
    if config.compose:
        cmd = compose_command(options.docker, config.compose, "stop")
    else:
        cmd = [options.docker, "stop", config.name]

    run_command(cmd, "devcontainer stop", options)


def down_container(config: DevcontainerConfig, options: RunOptions) -> None:
    """
    composeスタックを削除する、または名前付きコンテナを強制削除する。
    """
    if config.compose:
        cmd = compose_command(options.docker, config.compose, "down")
    else:
        cmd = [options.docker, "rm", "-f", config.name]

    run_command(cmd, "devcontainer down", options)
