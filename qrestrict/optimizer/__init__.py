from __future__ import annotations

from qrestrict.optimizer.pipeline import (
    clear_optimizer_passes,
    get_registered_optimizer_pass_ids,
    register_optimizer_pass,
    run_optimizer_pipeline,
)
from qrestrict.optimizer.policy_registry import (
    QuantParamsRestrictionError,
    RestrictionPolicy,
    get_policy_entry,
    get_policy_registry,
    get_supported_operation_types,
)
from qrestrict.optimizer.restrict_input_output_quant_params import (
    RESTRICT_INPUT_OUTPUT_QUANT_PARAMS_PASS_ID,
    apply_restrict_input_output_quant_params,
    register_restrict_input_output_quant_params_pass,
    restrict_input_output_quant_params,
)


def register_default_optimizer_passes() -> None:
    register_restrict_input_output_quant_params_pass()


__all__ = [
    "QuantParamsRestrictionError",
    "RESTRICT_INPUT_OUTPUT_QUANT_PARAMS_PASS_ID",
    "RestrictionPolicy",
    "apply_restrict_input_output_quant_params",
    "clear_optimizer_passes",
    "get_policy_entry",
    "get_policy_registry",
    "get_registered_optimizer_pass_ids",
    "get_supported_operation_types",
    "register_default_optimizer_passes",
    "register_optimizer_pass",
    "register_restrict_input_output_quant_params_pass",
    "restrict_input_output_quant_params",
    "run_optimizer_pipeline",
]
