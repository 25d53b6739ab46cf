"""
設定管理モジュール

devcontainer.tomlの読み込みと、型付き設定モデルを提供します。
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated, Any, Optional, Union

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    StrictInt,
    ValidationError,
    field_validator,
)

from .utils import load_config_file

# bool・float・数値文字列は受け付けない
Port = Annotated[StrictInt, Field(ge=0, le=65535)]


class DevcontainerError(Exception):
    """
    このツールが報告するすべてのエラーの基底クラス。

    CLIはこの例外を捕捉し、メッセージ（とヒント）を表示して
    exit_codeで終了する。
    """

    exit_code = 1

    def __init__(self, message: str, hint: Optional[str] = None) -> None:
        super().__init__(message)
        self.message = message
        self.hint = hint


class ConfigReadError(DevcontainerError):
    """設定ファイルが存在しない、または読み込めない場合に発生する例外。"""


class ConfigParseError(DevcontainerError):
    """設定ファイルの構文やスキーマが不正な場合に発生する例外。"""


class ConfigValidationError(DevcontainerError):
    """
    設定の組み合わせが不正な場合に発生する例外。

    コンテナ種別（image/build/compose）が0個または複数指定されている場合や、
    compose構成でexecするのにserviceが指定されていない場合に発生する。
    """


class _ConfigModel(BaseModel):
    # 読み込み後の設定は変更しない
    model_config = ConfigDict(frozen=True)


class ImageConfig(_ConfigModel):
    """既存イメージを使用するコンテナ種別"""

    name: str


class BuildConfig(_ConfigModel):
    """Dockerfileからビルドするコンテナ種別"""

    name: str
    dockerfile: str
    context: str
    target: Optional[str] = None
    args: dict[str, str] = Field(default_factory=dict)

    def sorted_args(self) -> list[tuple[str, str]]:
        """ビルド引数をキー順に並べて返す（引数リストを再現可能にするため）。"""
        return sorted(self.args.items())


class ComposeConfig(_ConfigModel):
    """docker composeスタックを使用するコンテナ種別"""

    files: list[str]
    service: Optional[str] = None
    workspace_folder: Optional[str] = None
    shutdown_action: Optional[str] = None
    override_command: Optional[bool] = None


class RunConfig(_ConfigModel):
    """単一コンテナ起動時のパラメータ"""

    workdir: str
    user: Optional[str] = None
    run_args: list[str] = Field(default_factory=list)


class PortsConfig(_ConfigModel):
    app: list[Port] = Field(default_factory=list)
    forward: list[Port] = Field(default_factory=list)

    def mappings(self) -> list[str]:
        """
        ポートマッピングを"P:P"形式で返す。

        appポート、forwardポートの順で、それぞれ入力順を保持する。
        """
        return [f"{port}:{port}" for port in [*self.app, *self.forward]]


class VolumeMount(_ConfigModel):
    host: str
    container: str
    mode: str = "rw"

    def to_volume_spec(self) -> str:
        """docker run -v に渡す host:container:mode 形式の文字列を返す。"""
        return f"{self.host}:{self.container}:{self.mode}"


ContainerKind = Union[ImageConfig, BuildConfig, ComposeConfig]


class DevcontainerConfig(_ConfigModel):
    """
    devcontainer.toml全体の設定。

    image/build/composeは型の上ではすべて省略可能で、
    コンテナを起動・ビルドする操作がcontainer_kind()で検証する。
    """

    name: str

    image: Optional[ImageConfig] = None
    build: Optional[BuildConfig] = None
    compose: Optional[ComposeConfig] = None

    run: Optional[RunConfig] = None
    ports: Optional[PortsConfig] = None
    volumes: dict[str, VolumeMount] = Field(default_factory=dict)

    @field_validator("image", mode="before")
    @classmethod
    def _image_shorthand(cls, value: Any) -> Any:
        # image = "python:3.12" の省略形を許可する
        if isinstance(value, str):
            return {"name": value}
        return value

    def container_kind(self) -> ContainerKind:
        """
        設定されている唯一のコンテナ種別を返す。

        Returns:
            ImageConfig、BuildConfig、ComposeConfigのいずれか

        Raises:
            ConfigValidationError: 種別が0個、または複数指定されている場合
        """
        kinds = [kind for kind in (self.image, self.build, self.compose) if kind is not None]

        if not kinds:
            raise ConfigValidationError(
                "no container kind specified",
                hint="Expected one of [image], [build], or [compose] in devcontainer.toml",
            )
        if len(kinds) > 1:
            raise ConfigValidationError(
                "multiple container kinds specified",
                hint="Only one of [image], [build], or [compose] can be set in devcontainer.toml",
            )

        return kinds[0]

    def volume_specs(self) -> list[str]:
        """ボリュームマウントを宣言順にhost:container:mode形式で返す。"""
        return [mount.to_volume_spec() for mount in self.volumes.values()]


def _format_validation_error(error: ValidationError) -> str:
    """pydanticの検証エラーを1行のメッセージにまとめる。"""
    parts = []
    for detail in error.errors():
        location = ".".join(str(part) for part in detail["loc"]) or "<root>"
        parts.append(f"{location}: {detail['msg']}")
    return "; ".join(parts)


def load_config(config_path: Path) -> DevcontainerConfig:
    """
    設定ファイルを読み込み、DevcontainerConfigとして検証する。

    Args:
        config_path: 設定ファイルのパス

    Returns:
        検証済みの設定

    Raises:
        ConfigReadError: ファイルが存在しない、または読み込めない場合
        ConfigParseError: 構文エラー、またはスキーマに合わない場合
    """
    try:
        data = load_config_file(config_path)
    # UnicodeDecodeErrorはValueErrorのサブクラスなので先に捕捉する
    except UnicodeDecodeError as e:
        raise ConfigReadError(f"Failed to read {config_path}: {e}") from e
    except OSError as e:
        raise ConfigReadError(f"Failed to read {config_path}: {e}") from e
    except ValueError as e:
        raise ConfigParseError(f"Failed to parse {config_path}: {e}") from e

    try:
        return DevcontainerConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigParseError(
            f"Invalid configuration in {config_path}: {_format_validation_error(e)}"
        ) from e
