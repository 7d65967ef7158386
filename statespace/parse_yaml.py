#!/usr/bin/env python3
"""
YAML reader for state space models.

A model file declares states, shocks, observables and parameters, gives the
system matrices as numbers or expressions in the parameters, optionally
partitions the sample into regimes that override some of the matrices, and
optionally points at a data file:

    declarations:
      name: ar1
      states: [x]
      shocks: [e]
      observables: [y]
      parameters: [rho, sigma]
    calibration:
      parameters: {rho: 0.85, sigma: 1.0}
    model:
      TTT: [[rho]]
      RRR: [[1]]
      QQ: [[sigma^2]]
      ZZ: [[1]]
    regimes:
      - {start: 0, end: 100}
      - {start: 100, end: 200, TTT: [[0.5*rho]]}
    estimation:
      data: ar1.csv
      presample: 4
"""

import logging
import re
from functools import lru_cache
from importlib.resources import files as ir_files
from tokenize import TokenError
from typing import IO, Any, Dict, Iterable, List, Mapping, Sequence, Union

import numpy as np
import pandas as p
import sympy as sp
import yaml
from cerberus import Validator

from .StateSpaceModel import StateSpaceModel
from .data import read_data_file
from .errors import ConfigurationError, DimensionMismatch, ValidationError
from .regimes import RegimeSchedule

MATRIX_NAMES = ("TTT", "RRR", "CCC", "QQ", "ZZ", "DD", "EE")
VECTOR_NAMES = ("CCC", "DD")

@lru_cache(maxsize=None)
def _schema_text(schema_name: str) -> str:
    return (ir_files("statespace") / "schema" / f"{schema_name}.yaml").read_text(encoding="utf-8")


def load_schema(schema_name: str = "ssm") -> Dict[str, Any]:
    """Load a schema YAML by name from the packaged statespace/schema directory."""
    return yaml.safe_load(_schema_text(schema_name))


def get_validator() -> Validator:
    # Validators keep per-run state (``errors``); each read gets its own.
    return Validator(load_schema("ssm"))


def validate_data(data: Dict, validator: Validator) -> None:
    if not validator.validate(data):
        error_messages = '\n'.join([f'{field}: {error}' for field, error in validator.errors.items()])
        raise ValidationError(f"Validation failed: \n{error_messages}")


def _base_parse_context() -> Dict[str, Any]:
    return {
        "exp": sp.exp,
        "log": sp.log,
        "sqrt": sp.sqrt,
        "Abs": sp.Abs,
    }


def _expr_str(x: Any) -> str:
    if isinstance(x, str):
        return x
    if isinstance(x, (int, float, np.integer, np.floating)):
        return str(float(x))
    return str(x)


def _parse_expr(expr: Any, *, ctx: Mapping[str, Any], allowed_symbols: Iterable[sp.Symbol], where: str) -> sp.Expr:
    s = _expr_str(expr)
    try:
        out = sp.sympify(s, locals=dict(ctx))
    except (sp.SympifyError, SyntaxError, TokenError, TypeError) as e:
        raise ConfigurationError(f"While parsing {where} expression {s!r}: {e}") from e
    if not isinstance(out, sp.Basic):
        raise ConfigurationError(f"{where} expression {s!r} is not a scalar expression.")

    allowed = set(allowed_symbols)
    unknown = [sym for sym in out.free_symbols if sym not in allowed]
    if unknown:
        raise ConfigurationError(f"Unknown symbol(s) in {where} expression {s!r}: {[str(u) for u in unknown]}")
    return out


def _parse_matrix(raw: Sequence[Sequence[Any]], *, ctx, allowed_symbols, where: str) -> sp.Matrix:
    rows = [r if isinstance(r, list) else [r] for r in raw]
    if not rows:
        raise ConfigurationError(f"{where} must be a non-empty 2D list.")
    ncol = len(rows[0])
    for i, r in enumerate(rows):
        if len(r) != ncol:
            raise DimensionMismatch(f"{where} must be rectangular; row 0 has {ncol} cols but row {i} has {len(r)}.")

    return sp.Matrix(
        [
            [_parse_expr(x, ctx=ctx, allowed_symbols=allowed_symbols, where=f"{where}[{i},{j}]") for j, x in enumerate(r)]
            for i, r in enumerate(rows)
        ]
    )


def _parse_vector(raw: Sequence[Any], *, ctx, allowed_symbols, where: str) -> sp.Matrix:
    vals = list(raw)
    if not vals:
        raise ConfigurationError(f"{where} must be non-empty.")
    return sp.Matrix(
        [_parse_expr(x, ctx=ctx, allowed_symbols=allowed_symbols, where=f"{where}[{i}]") for i, x in enumerate(vals)]
    )


def _parse_system(raw: Mapping[str, Any], *, ctx, allowed_symbols, where: str) -> Dict[str, sp.Matrix]:
    parsed = {}
    for name in MATRIX_NAMES:
        if name not in raw:
            continue
        parse = _parse_vector if name in VECTOR_NAMES else _parse_matrix
        parsed[name] = parse(raw[name], ctx=ctx, allowed_symbols=allowed_symbols, where=f"{where}.{name}")
    return parsed


def _check_shapes(exprs: Mapping[str, sp.Matrix], nz: int, ne: int, ny: int, where: str) -> None:
    expected = {
        "TTT": (nz, nz),
        "RRR": (nz, ne),
        "CCC": (nz, 1),
        "QQ": (ne, ne),
        "ZZ": (ny, nz),
        "DD": (ny, 1),
        "EE": (ny, ny),
    }
    for name, shape in expected.items():
        if exprs[name].shape != shape:
            raise DimensionMismatch(f"{where}.{name} must have shape {shape}, got {exprs[name].shape}.")


def _lambdify_system(exprs: Mapping[str, sp.Matrix], arg_syms: List[sp.Symbol]):
    return {name: sp.lambdify(arg_syms, exprs[name], modules="numpy") for name in MATRIX_NAMES}


def _matrix_callable(name: str, funcs_by_regime: List[Dict[str, Any]]):
    def f(para, regime=0):
        args = [] if para is None else np.asarray(para, dtype=float).reshape(-1).tolist()
        return np.asarray(funcs_by_regime[regime][name](*args), dtype=float)
    return f


def read_ssm(yaml_dict: Dict[str, Any], data=None) -> StateSpaceModel:
    """Build a ``StateSpaceModel`` from an already validated model dictionary."""
    logger = logging.getLogger("statespace.parser")

    dec = yaml_dict["declarations"]
    state_names = [str(s) for s in dec["states"]]
    shock_names = [str(s) for s in dec["shocks"]]
    obs_names = [str(o) for o in dec["observables"]]
    parameter_names = [str(x) for x in dec.get("parameters", []) or []]

    for kind, names in [("states", state_names), ("shocks", shock_names),
                        ("observables", obs_names), ("parameters", parameter_names)]:
        if len(set(names)) != len(names):
            raise ConfigurationError(f"Duplicate {kind}: {names}")

    nz, ne, ny = len(state_names), len(shock_names), len(obs_names)
    logger.debug(f"Model has {nz} states, {ne} shocks, {ny} observables and {len(parameter_names)} parameters")

    cal = (yaml_dict.get("calibration", {}) or {}).get("parameters", {}) or {}
    missing = [x for x in parameter_names if x not in cal]
    if missing:
        raise ConfigurationError(f"Missing calibration.parameters entries for: {missing}")
    p0 = np.array([float(cal[x]) for x in parameter_names], dtype=float)

    param_syms = {x: sp.Symbol(x) for x in parameter_names}
    ctx = _base_parse_context()
    ctx.update(param_syms)
    allowed_symbols = set(param_syms.values())

    base = _parse_system(yaml_dict["model"], ctx=ctx, allowed_symbols=allowed_symbols, where="model")
    base.setdefault("CCC", sp.zeros(nz, 1))
    base.setdefault("DD", sp.zeros(ny, 1))
    base.setdefault("EE", sp.zeros(ny, ny))
    _check_shapes(base, nz, ne, ny, "model")

    raw_regimes = yaml_dict.get("regimes") or [None]
    arg_syms = [param_syms[x] for x in parameter_names]
    funcs_by_regime = []
    for i, raw in enumerate(raw_regimes):
        exprs = dict(base)
        if raw is not None:
            overrides = _parse_system(raw, ctx=ctx, allowed_symbols=allowed_symbols, where=f"regimes[{i}]")
            exprs.update(overrides)
            _check_shapes(exprs, nz, ne, ny, f"regimes[{i}]")
        funcs_by_regime.append(_lambdify_system(exprs, arg_syms))

    estimation = yaml_dict.get("estimation", {}) or {}
    if data is not None:
        yy = data if isinstance(data, p.DataFrame) else p.DataFrame(np.asarray(data, dtype=float), columns=obs_names)
    elif "data" in estimation:
        logger.info(f"Reading data from {estimation['data']}")
        yy = read_data_file(estimation["data"], obs_names)
    elif yaml_dict.get("regimes"):
        nobs = int(yaml_dict["regimes"][-1]["end"])
        yy = p.DataFrame(np.nan * np.ones((nobs, ny)), columns=obs_names)
    else:
        raise ConfigurationError("No data given and no regimes to determine the sample length.")

    regimes = None
    if yaml_dict.get("regimes"):
        regimes = RegimeSchedule(tuple((int(r["start"]), int(r["end"])) for r in yaml_dict["regimes"]))
        logger.debug(f"Model has {regimes.n_regimes} regimes over {regimes.n_periods} periods")

    callables = {name: _matrix_callable(name, funcs_by_regime) for name in MATRIX_NAMES}
    model = StateSpaceModel(yy, regimes=regimes, t0=int(estimation.get("presample", 0)),
                            shock_names=shock_names, state_names=state_names,
                            obs_names=obs_names, **callables)

    model.name = str(dec["name"])
    model.parameter_names = list(parameter_names)
    model.p0 = p0
    return model


def read_yaml(yaml_file: Union[str, IO[str]], data=None,
              sub_list: List[tuple] = [('^', '**'), (';', '')]) -> StateSpaceModel:
    """
    Read a state space model from a YAML file.

    Args:
        yaml_file: Path to a YAML file or file-like object containing the model
        data: Optional T x Ny DataFrame or array used instead of estimation.data
        sub_list: List of substitution patterns to apply to the YAML text

    Returns:
        A StateSpaceModel

    Raises:
        ValidationError: If the schema validation fails
        ConfigurationError: If expressions, regimes or data are malformed
        DimensionMismatch: If a matrix does not match the declarations
    """
    logger = logging.getLogger("statespace.parser")

    if isinstance(yaml_file, str):
        logger.info(f"Reading YAML from file: {yaml_file}")
        with open(yaml_file) as f:
            txt = f.read()
    else:
        logger.info("Reading YAML from stream")
        txt = yaml_file.read()

    for old, new in sub_list:
        txt = txt.replace(old, new)

    txt = re.sub(r"@ ?\n", " ", txt)

    yaml_dict = yaml.safe_load(txt)
    if not isinstance(yaml_dict, dict):
        raise ValidationError("Validation failed: \nthe model file must contain a mapping")

    try:
        logger.debug("Performing schema validation")
        validate_data(yaml_dict, get_validator())
    except ValidationError as e:
        logger.error(f"Schema validation failed: {e}")
        raise

    try:
        return read_ssm(yaml_dict, data=data)
    except ConfigurationError as e:
        logger.error(f"Model validation failed: {e}")
        raise


__all__ = ["read_yaml", "read_ssm", "load_schema"]
