from __future__ import annotations

from collections import OrderedDict
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from qrestrict.graph.ir import ModelIR, clone_model_ir

OptimizerPassCallback = Callable[..., Optional[Dict[str, int]]]


class _OptimizerPass:
    def __init__(
        self,
        pass_id: str,
        callback: OptimizerPassCallback,
    ) -> None:
        self.pass_id = str(pass_id)
        self.callback = callback


_REGISTERED_OPTIMIZER_PASSES: "OrderedDict[str, _OptimizerPass]" = OrderedDict()


def register_optimizer_pass(
    *,
    pass_id: str,
    callback: OptimizerPassCallback,
    overwrite: bool = False,
) -> None:
    pid = str(pass_id).strip()
    if pid == "":
        raise ValueError("optimizer pass_id must not be empty.")
    if not callable(callback):
        raise TypeError("optimizer pass callback must be callable.")
    if pid in _REGISTERED_OPTIMIZER_PASSES and not overwrite:
        raise ValueError(f"optimizer pass already exists: {pid}")
    _REGISTERED_OPTIMIZER_PASSES[pid] = _OptimizerPass(
        pass_id=pid,
        callback=callback,
    )


def clear_optimizer_passes() -> None:
    _REGISTERED_OPTIMIZER_PASSES.clear()


def get_registered_optimizer_pass_ids() -> List[str]:
    return list(_REGISTERED_OPTIMIZER_PASSES.keys())


def run_optimizer_pipeline(
    *,
    model_ir: ModelIR,
    enabled_pass_ids: Optional[Sequence[str]] = None,
    **pass_kwargs: Any,
) -> Tuple[ModelIR, Dict[str, Any]]:
    """
    Run the registered passes over a copy of model_ir.

    The caller's model is never modified, so a pass that raises leaves
    nothing half-rewritten behind.
    """
    working_model = clone_model_ir(model_ir)

    registered_pass_ids = get_registered_optimizer_pass_ids()
    if enabled_pass_ids is None:
        target_pass_ids = list(registered_pass_ids)
    else:
        target_pass_ids = [str(v) for v in enabled_pass_ids]
        unknown_pass_ids = sorted(
            list(set(target_pass_ids) - set(registered_pass_ids))
        )
        if len(unknown_pass_ids) > 0:
            raise ValueError(
                f"Unknown optimizer pass id(s): {unknown_pass_ids}"
            )

    applied_passes: List[Dict[str, Any]] = []
    for pass_id in target_pass_ids:
        optimizer_pass = _REGISTERED_OPTIMIZER_PASSES[pass_id]
        operator_count_before = len(working_model.operators)
        tensor_count_before = len(working_model.tensors)
        raw_stats = optimizer_pass.callback(working_model, **pass_kwargs)
        stats = raw_stats if isinstance(raw_stats, dict) else {}
        stats = {str(k): int(v) for k, v in stats.items()}
        added_operators = len(working_model.operators) - operator_count_before
        added_tensors = len(working_model.tensors) - tensor_count_before
        changed = bool(
            added_operators != 0
            or added_tensors != 0
            or any(v > 0 for k, v in stats.items() if k != "visited_operators")
        )
        applied_passes.append(
            {
                "pass_id": pass_id,
                "stats": stats,
                "added_operators": int(added_operators),
                "added_tensors": int(added_tensors),
                "changed": changed,
            }
        )

    report = {
        "schema_version": 1,
        "pipeline_version": 1,
        "registered_pass_ids": registered_pass_ids,
        "enabled_pass_ids": target_pass_ids,
        "applied_passes": applied_passes,
        "summary": {
            "registered_pass_count": int(len(registered_pass_ids)),
            "enabled_pass_count": int(len(target_pass_ids)),
            "executed_pass_count": int(len(applied_passes)),
            "changed_pass_count": int(
                len([p for p in applied_passes if bool(p.get("changed", False))])
            ),
            "total_added_operators": int(sum(p["added_operators"] for p in applied_passes)),
            "total_added_tensors": int(sum(p["added_tensors"] for p in applied_passes)),
        },
    }
    return working_model, report
