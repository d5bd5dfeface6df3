from __future__ import annotations

import copy
import logging
import os
import shutil
import sys
import tempfile
from pathlib import Path
from typing import Any, Dict, List, Optional, Union, cast

import importlib_resources
import yaml

log = logging.getLogger(__name__)

CONFIG_FILENAME = "config.yaml"
SECTION = "fee_model"


def initial_config_file(filename: Union[str, Path]) -> str:
    initial_config_path = importlib_resources.files(__name__.rpartition(".")[0]).joinpath(f"initial-{filename}")
    contents: str = initial_config_path.read_text(encoding="utf-8")
    return contents


def load_default_config(filename: str = CONFIG_FILENAME) -> Dict[str, Any]:
    config: Dict[str, Any] = yaml.safe_load(initial_config_file(filename))
    return config


def config_path_for_filename(root_path: Path, filename: Union[str, Path]) -> Path:
    path_filename = Path(filename)
    if path_filename.is_absolute():
        return path_filename
    return root_path / "config" / filename


def create_default_config(root_path: Path, filenames: List[str] = [CONFIG_FILENAME]) -> None:
    for filename in filenames:
        default_config_file_data: str = initial_config_file(filename)
        path: Path = config_path_for_filename(root_path, filename)
        tmp_path: Path = path.with_suffix("." + str(os.getpid()))
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(tmp_path, "w") as f:
            f.write(default_config_file_data)
        try:
            os.replace(str(tmp_path), str(path))
        except PermissionError:
            shutil.move(str(tmp_path), str(path))


def save_config(root_path: Path, filename: Union[str, Path], config_data: Any) -> None:
    path: Path = config_path_for_filename(root_path, filename)
    path.parent.mkdir(parents=True, exist_ok=True)
    with tempfile.TemporaryDirectory(dir=path.parent) as tmp_dir:
        tmp_path: Path = Path(tmp_dir) / Path(filename).name
        with open(tmp_path, "w") as f:
            yaml.safe_dump(config_data, f)
        try:
            os.replace(str(tmp_path), path)
        except PermissionError:
            shutil.move(str(tmp_path), str(path))


def load_config(
    root_path: Path,
    filename: Union[str, Path] = CONFIG_FILENAME,
    sub_config: Optional[str] = None,
    exit_on_error: bool = True,
) -> Dict[str, Any]:
    path = config_path_for_filename(root_path, filename)

    if not path.is_file():
        if not exit_on_error:
            raise ValueError("Config not found")
        print(f"can't find {path}")
        print("** please run `bitcoin_fee_model init` to create a new config file **")
        sys.exit(-1)

    with open(path) as opened_config_file:
        r = yaml.safe_load(opened_config_file)
    if not isinstance(r, dict):
        raise ValueError(f"Config file {path} does not contain a map")
    r.update(load_defaults_for_missing_sections(r, path.name))
    if sub_config is not None:
        r = cast(Dict[str, Any], r.get(sub_config))
    return r


def load_defaults_for_missing_sections(config: Dict[str, Any], config_name: str) -> Dict[str, Any]:
    """
    Keys of the `fee_model` section that an older config file lacks are taken from the
    packaged defaults. Keys that are present, `bundles` in particular, are never touched.
    """
    defaulted: Dict[str, Any] = {}
    try:
        default_config = yaml.safe_load(initial_config_file(config_name))
    except FileNotFoundError:
        return defaulted
    section = config.get(SECTION)
    default_section = default_config[SECTION]
    if section is None:
        log.warning(f"config has no {SECTION} section, using the defaults")
        defaulted[SECTION] = copy.deepcopy(default_section)
        return defaulted
    missing = [key for key in default_section if key not in section]
    if len(missing) > 0:
        merged = dict(section)
        for key in missing:
            merged[key] = copy.deepcopy(default_section[key])
        defaulted[SECTION] = merged
    return defaulted

