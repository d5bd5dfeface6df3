from __future__ import annotations

import concurrent.futures
import logging
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

import importlib_resources
from typing_extensions import final

from bitcoin_fee_model.model.model_artifact import (
    MODEL_FILENAME,
    TEST_VECTORS_FILENAME,
    ModelArtifactBundle,
    load_model_artifact,
)
from bitcoin_fee_model.types.confirmation_target import ModelRole
from bitcoin_fee_model.util.errors import Err, LoadError, MissingModelError
from bitcoin_fee_model.util.path import path_from_root

log = logging.getLogger(__name__)


@final
@dataclass(frozen=True)
class BundleSource:
    """
    Where model bundle directories are read from: the bundles shipped inside this
    package when `models_path` is None, a directory on disk otherwise. Each bundle
    is a `<bundle_id>/` directory holding `model.cbor` and `test_vectors.yaml`.
    """

    models_path: Optional[Path] = None

    @property
    def embedded(self) -> bool:
        return self.models_path is None

    def _file(self, bundle_id: str, filename: str) -> Any:
        if bundle_id in ("", ".", "..") or "/" in bundle_id or "\\" in bundle_id:
            raise LoadError(Err.MODEL_NOT_FOUND, f"invalid bundle id {bundle_id!r}")
        if self.models_path is None:
            return importlib_resources.files("bitcoin_fee_model") / "models" / bundle_id / filename
        return self.models_path / bundle_id / filename

    def read_model(self, bundle_id: str) -> bytes:
        model_file = self._file(bundle_id, MODEL_FILENAME)
        if not model_file.is_file():
            raise LoadError(Err.MODEL_NOT_FOUND, f"bundle {bundle_id}: {MODEL_FILENAME} not found in {self}")
        try:
            content: bytes = model_file.read_bytes()
        except OSError as e:
            raise LoadError(Err.MODEL_NOT_FOUND, f"bundle {bundle_id}: can't read {MODEL_FILENAME}: {e}") from e
        return content

    def read_test_vectors(self, bundle_id: str) -> Optional[str]:
        vectors_file = self._file(bundle_id, TEST_VECTORS_FILENAME)
        if not vectors_file.is_file():
            return None
        text: str = vectors_file.read_text(encoding="utf-8")
        return text

    def load(self, bundle_id: str, role: Optional[ModelRole]) -> ModelArtifactBundle:
        return load_model_artifact(self.read_model(bundle_id), bundle_id, role)

    def __str__(self) -> str:
        return "embedded bundles" if self.models_path is None else str(self.models_path)


def _load_guarded(source: BundleSource, bundle_id: str, role: Optional[ModelRole]) -> ModelArtifactBundle:
    try:
        return source.load(bundle_id, role)
    except LoadError:
        raise
    except Exception as e:
        raise LoadError(Err.MODEL_DESERIALIZATION_FAILED, f"bundle {bundle_id}: {type(e).__name__} {e}") from e


@final
@dataclass(frozen=True)
class ModelRegistry:
    """
    The set of loaded model bundles, indexed by role and by bundle id. Built once,
    all-or-nothing, and read-only afterwards so it can be shared between threads.
    """

    by_role: Mapping[ModelRole, ModelArtifactBundle]
    by_id: Mapping[str, ModelArtifactBundle]
    source: BundleSource = field(default_factory=BundleSource)

    @classmethod
    def create(
        cls,
        bundles: Mapping[ModelRole, str],
        source: Optional[BundleSource] = None,
        extra_bundle_ids: Sequence[str] = (),
        load_timeout: Optional[float] = None,
    ) -> ModelRegistry:
        if source is None:
            source = BundleSource()
        for role in ModelRole:
            if role not in bundles:
                raise LoadError(Err.MODEL_ROLE_NOT_CONFIGURED, f"no bundle configured for role {role.value}")
        if bundles[ModelRole.HURRY] == bundles[ModelRole.STANDARD]:
            raise LoadError(
                Err.MODEL_ROLE_NOT_CONFIGURED, f"roles must use distinct bundles, both use {bundles[ModelRole.HURRY]}"
            )

        jobs: List[Tuple[str, Optional[ModelRole]]] = [(bundles[role], role) for role in ModelRole]
        for bundle_id in extra_bundle_ids:
            if bundle_id not in [job[0] for job in jobs]:
                jobs.append((bundle_id, None))

        log.info(f"Loading {len(jobs)} model bundles from {source}")
        executor = ThreadPoolExecutor(max_workers=len(jobs), thread_name_prefix="model-loader-")
        try:
            futures: List[Future[ModelArtifactBundle]] = [
                executor.submit(_load_guarded, source, bundle_id, role) for bundle_id, role in jobs
            ]
            _, not_done = concurrent.futures.wait(futures, timeout=load_timeout)
            if len(not_done) > 0:
                pending = [job[0] for job, future in zip(jobs, futures) if future in not_done]
                log.error(f"Timed out after {load_timeout}s loading model bundles {pending}")
                raise LoadError(Err.MODEL_LOAD_TIMEOUT, f"timed out after {load_timeout}s loading {pending}")

            by_role: Dict[ModelRole, ModelArtifactBundle] = {}
            by_id: Dict[str, ModelArtifactBundle] = {}
            for (bundle_id, role), future in zip(jobs, futures):
                try:
                    bundle = future.result()
                except LoadError as e:
                    label = "extra" if role is None else role.value
                    log.error(f"Failed to load {label} model bundle {bundle_id}: {e}")
                    raise
                if role is not None:
                    by_role[role] = bundle
                by_id[bundle_id] = bundle
        finally:
            executor.shutdown(wait=False, cancel_futures=True)

        return cls(by_role=MappingProxyType(by_role), by_id=MappingProxyType(by_id), source=source)

    @classmethod
    def from_config(cls, config: Dict[str, Any], root_path: Optional[Path] = None) -> ModelRegistry:
        """
        `config` is the `fee_model` section of the configuration. Changing its `bundles`
        mapping is how a model is upgraded.
        """
        bundles_config = config.get("bundles")
        if not isinstance(bundles_config, dict):
            raise LoadError(Err.MODEL_ROLE_NOT_CONFIGURED, "missing bundles section in fee_model config")
        bundles: Dict[ModelRole, str] = {}
        for role_name, bundle_id in bundles_config.items():
            try:
                role = ModelRole(role_name)
            except ValueError as e:
                raise LoadError(Err.MODEL_ROLE_NOT_CONFIGURED, f"unknown model role {role_name!r}") from e
            bundles[role] = str(bundle_id)

        models_path = config.get("models_path")
        source = BundleSource()
        if models_path is not None:
            base = Path.cwd() if root_path is None else root_path
            source = BundleSource(path_from_root(base, models_path))

        return cls.create(
            bundles,
            source=source,
            extra_bundle_ids=[str(b) for b in config.get("extra_bundles", None) or []],
            load_timeout=config.get("load_timeout"),
        )

    def resolve(self, role: ModelRole) -> ModelArtifactBundle:
        bundle = self.by_role.get(role)
        if bundle is None:
            raise MissingModelError(f"no model bundle loaded for role {role.value}")
        return bundle

    def get(self, bundle_id: str) -> ModelArtifactBundle:
        bundle = self.by_id.get(bundle_id)
        if bundle is None:
            raise MissingModelError(f"model bundle {bundle_id} is not loaded")
        return bundle

    def roles(self) -> Dict[ModelRole, str]:
        return {role: bundle.bundle_id for role, bundle in self.by_role.items()}

    def bundles(self) -> List[ModelArtifactBundle]:
        """All loaded bundles, the routed ones first."""
        active = [self.by_role[role] for role in ModelRole if role in self.by_role]
        extra = [bundle for bundle in self.by_id.values() if bundle.role is None]
        return active + extra
