"""
ユーティリティ関数

設定ファイルの検索と読み込みなど、共通で使用される汎用的な関数を提供します。
"""

from __future__ import annotations

import tomllib
from pathlib import Path
from typing import Any, cast

import json5

DEFAULT_CONFIG_PATH = Path(".devcontainer") / "devcontainer.toml"

JSON_SUFFIXES = (".json", ".jsonc")


def find_devcontainer_config(workspace: Path) -> Path:
    """
    ワークスペース内の設定ファイルを検索する。

    以下の順序で検索:
    1. .devcontainer/devcontainer.toml
    2. .devcontainer/devcontainer.json

    どちらも存在しない場合はデフォルトのTOMLパスを返し、
    読み込み時のエラーとして報告させる。

    Args:
        workspace: 検索するワークスペースのパス

    Returns:
        設定ファイルのパス
    """
    candidates = [
        workspace / DEFAULT_CONFIG_PATH,
        workspace / ".devcontainer" / "devcontainer.json",
    ]

    for candidate in candidates:
        if candidate.is_file():
            return candidate

    return candidates[0]


def is_json_file(file_path: Path) -> bool:
    """拡張子からJSON(JSONC)形式かどうかを判定する。"""
    return file_path.suffix.lower() in JSON_SUFFIXES


def load_config_file(file_path: Path) -> dict[str, Any]:
    """
    TOMLまたはJSONCの設定ファイルを読み込む。

    拡張子が.json/.jsoncの場合はjson5でコメント付きJSONとして、
    それ以外はTOMLとしてパースする。

    Args:
        file_path: 読み込むファイルのパス

    Returns:
        パースされた辞書

    Raises:
        OSError: ファイルが存在しない、または読み込めない場合
        UnicodeDecodeError: UTF-8として読めない場合
        ValueError: 構文エラー、またはトップレベルがオブジェクトでない場合
    """
    with open(file_path, encoding="utf-8") as f:
        content = f.read()

    if not is_json_file(file_path):
        return tomllib.loads(content)

    data = json5.loads(content)
    if not isinstance(data, dict):
        raise ValueError("top level must be an object")
    return cast(dict[str, Any], data)


def format_command(cmd: list[str]) -> str:
    """
    コマンドのリストを表示用の文字列に整形する。

    空白や特殊文字を含む引数はシェルにそのまま貼り付けられる形でクォートする。
    """
    import shlex

    return shlex.join(cmd)
