from __future__ import annotations

import os
from typing import Any, Callable, Dict

import numpy as np

from qrestrict.graph.ir import ModelIR, OperatorIR, make_asymm_per_layer_quant_params
from qrestrict.graph.modeling import (
    append_requant_operator,
    insert_requant_operator,
    sort_operators_in_topological_order,
    update_operator_input_tensors,
    update_operator_output_tensors,
)
from qrestrict.graph.quantization import (
    dequantize_data,
    get_per_layer_scale,
    get_per_layer_zero_point,
    is_asymm_per_layer_quant_type,
    is_symm_per_layer_quant_type,
    quantize_data,
)
from qrestrict.optimizer.pipeline import register_optimizer_pass
from qrestrict.optimizer.policy_registry import (
    QuantParamsRestrictionError,
    RestrictionPolicy,
    check_policy_registry,
    resolve_operator_policy,
)
from qrestrict.utils.debug import operand_id_to_string, operation_type_to_string
from qrestrict.utils.logging import Color, debug, info, set_log_level

RESTRICT_INPUT_OUTPUT_QUANT_PARAMS_PASS_ID = "restrict_input_output_quant_params"

DEFAULT_SCALE_THRESHOLD = 1e-5
DEFAULT_BIAS_SCALE_THRESHOLD = 1e-6
DEFAULT_OUTPUT_SCALE_MARGIN = 1e-6
# The output guard must leave output_scale strictly above input_scale * weight_scale.
DEFAULT_OUTPUT_SCALE_THRESHOLD = 0.0

RESTRICTION_CONTROL_KEYS = (
    "scale_threshold",
    "bias_scale_threshold",
    "output_scale_margin",
    "verbosity",
)


def _reject_unknown_restriction_controls(kwargs: Dict[str, Any]) -> None:
    unknown_keys = sorted(k for k in kwargs.keys() if k not in RESTRICTION_CONTROL_KEYS)
    if len(unknown_keys) > 0:
        raise ValueError(
            f"Unknown restriction control(s): {unknown_keys}. "
            f"Supported: {list(RESTRICTION_CONTROL_KEYS)}"
        )


def resolve_restriction_controls(kwargs: Dict[str, Any]) -> Dict[str, Any]:
    _reject_unknown_restriction_controls(kwargs)
    scale_threshold = kwargs.get(
        "scale_threshold",
        os.environ.get("QRESTRICT_SCALE_THRESHOLD", str(DEFAULT_SCALE_THRESHOLD)),
    )
    bias_scale_threshold = kwargs.get(
        "bias_scale_threshold",
        os.environ.get("QRESTRICT_BIAS_SCALE_THRESHOLD", str(DEFAULT_BIAS_SCALE_THRESHOLD)),
    )
    output_scale_margin = kwargs.get(
        "output_scale_margin",
        os.environ.get("QRESTRICT_OUTPUT_SCALE_MARGIN", str(DEFAULT_OUTPUT_SCALE_MARGIN)),
    )
    controls = {
        "scale_threshold": float(scale_threshold),
        "bias_scale_threshold": float(bias_scale_threshold),
        "output_scale_margin": float(output_scale_margin),
        "verbosity": kwargs.get("verbosity", None),
    }
    for key in ["scale_threshold", "bias_scale_threshold"]:
        if not controls[key] >= 0.0:
            raise ValueError(f"{key} must be non-negative. got: {controls[key]}")
    if not controls["output_scale_margin"] > 0.0:
        raise ValueError(
            f"output_scale_margin must be positive. got: {controls['output_scale_margin']}"
        )
    return controls


def restrict_input_output_scale(
    model_ir: ModelIR,
    operator: OperatorIR,
    target_name: str,
    quant_scale: float,
    zero_point: int,
    is_output: bool = False,
    threshold: float = DEFAULT_SCALE_THRESHOLD,
) -> bool:
    """
    Make target_name carry (quant_scale, zero_point) on the edge it shares
    with operator.

    When the parameters differ, a REQUANTIZE operator is spliced in:
    on the producer side when is_output is True (operator writes the new
    tensor), otherwise on the consumer side (only operator reads the new
    tensor). The quantization parameters of target_name are left as they are.

    Returns True when the graph was changed.
    """
    target_tensor = model_ir.get_tensor(target_name)
    if not is_asymm_per_layer_quant_type(target_tensor):
        return False
    target_quant_scale = get_per_layer_scale(target_tensor)
    target_zero_point = get_per_layer_zero_point(target_tensor)
    if abs(target_quant_scale - float(quant_scale)) <= float(threshold) \
        and target_zero_point == int(zero_point):
        return False
    debug(
        f"Requantize {'output' if is_output else 'input'} operand "
        f"{operand_id_to_string(model_ir, target_name)}: scale "
        f"{target_quant_scale} -> {float(quant_scale)}, zero_point "
        f"{target_zero_point} -> {int(zero_point)}"
    )
    quant_params = make_asymm_per_layer_quant_params(quant_scale, zero_point)
    if is_output:
        requantized_name = insert_requant_operator(
            model_ir,
            target_name,
            quant_params,
            producer=operator,
        )
        update_operator_output_tensors([operator], target_name, requantized_name)
    else:
        requantized_name = append_requant_operator(
            model_ir,
            target_name,
            quant_params,
            consumer=operator,
        )
        update_operator_input_tensors([operator], target_name, requantized_name)
    return True


def restrict_input_output_scale_to_reference(
    model_ir: ModelIR,
    operator: OperatorIR,
    target_name: str,
    reference_name: str,
    is_output: bool = False,
    threshold: float = DEFAULT_SCALE_THRESHOLD,
) -> bool:
    reference_tensor = model_ir.get_tensor(reference_name)
    if not is_asymm_per_layer_quant_type(reference_tensor):
        return False
    return restrict_input_output_scale(
        model_ir,
        operator,
        target_name,
        get_per_layer_scale(reference_tensor),
        get_per_layer_zero_point(reference_tensor),
        is_output=is_output,
        threshold=threshold,
    )


def _restrict_output_bias_scale(
    model_ir: ModelIR,
    operator: OperatorIR,
    input_name: str,
    weight_name: str,
    bias_name: str,
    output_name: str,
    bias_threshold: float = DEFAULT_BIAS_SCALE_THRESHOLD,
    output_margin: float = DEFAULT_OUTPUT_SCALE_MARGIN,
    threshold: float = DEFAULT_OUTPUT_SCALE_THRESHOLD,
) -> Dict[str, bool]:
    input_tensor = model_ir.get_tensor(input_name)
    weight_tensor = model_ir.get_tensor(weight_name)
    bias_tensor = model_ir.get_tensor(bias_name)
    output_tensor = model_ir.get_tensor(output_name)
    updated = {"bias": False, "output": False}
    if not is_asymm_per_layer_quant_type(input_tensor) \
        or not is_asymm_per_layer_quant_type(weight_tensor) \
        or not is_symm_per_layer_quant_type(bias_tensor) \
        or not is_asymm_per_layer_quant_type(output_tensor):
        return updated

    input_scale = get_per_layer_scale(input_tensor)
    weight_scale = get_per_layer_scale(weight_tensor)
    bias_scale = get_per_layer_scale(bias_tensor)
    output_scale = get_per_layer_scale(output_tensor)
    input_scale_x_weight_scale = float(input_scale) * float(weight_scale)

    if abs(input_scale_x_weight_scale - bias_scale) > float(bias_threshold):
        debug(
            f"Requantize bias operand {operand_id_to_string(model_ir, bias_name)}: "
            f"scale {bias_scale} -> {input_scale_x_weight_scale}"
        )
        if len(bias_tensor.shape) != 1:
            raise QuantParamsRestrictionError(
                reason_code="unsupported_bias_rank",
                message=(
                    f"Bias operand must be rank-1 to be requantized. "
                    f"tensor={bias_name} shape={list(bias_tensor.shape)}"
                ),
                operator_name=operator.name if operator.name else str(operator.op_type),
                op_type=operator.op_type,
            )
        if not isinstance(bias_tensor.data, np.ndarray):
            raise QuantParamsRestrictionError(
                reason_code="requires_constant_bias",
                message=f"Bias operand must be a constant buffer. tensor={bias_name}",
                operator_name=operator.name if operator.name else str(operator.op_type),
                op_type=operator.op_type,
            )
        float_bias_data = dequantize_data(bias_tensor.data, bias_scale)
        bias_tensor.quantization.scale[0] = input_scale_x_weight_scale
        quantized_bias_data = quantize_data(
            float_bias_data,
            input_scale_x_weight_scale,
            dtype=bias_tensor.data.dtype,
        )
        # Shared bias buffers must observe the new values.
        np.copyto(bias_tensor.data, quantized_bias_data.reshape(bias_tensor.data.shape))
        updated["bias"] = True

    # The accumulator saturates unless output_scale > input_scale * weight_scale
    if output_scale > input_scale_x_weight_scale:
        return updated
    updated["output"] = restrict_input_output_scale(
        model_ir,
        operator,
        output_name,
        input_scale_x_weight_scale + float(output_margin),
        get_per_layer_zero_point(output_tensor),
        is_output=True,
        threshold=threshold,
    )
    return updated


def restrict_output_bias_scale(
    model_ir: ModelIR,
    operator: OperatorIR,
    input_name: str,
    weight_name: str,
    bias_name: str,
    output_name: str,
    bias_threshold: float = DEFAULT_BIAS_SCALE_THRESHOLD,
    output_margin: float = DEFAULT_OUTPUT_SCALE_MARGIN,
    threshold: float = DEFAULT_OUTPUT_SCALE_THRESHOLD,
) -> bool:
    """
    Enforce bias_scale == input_scale * weight_scale for an accumulator and
    keep output_scale strictly above that product.

    The bias buffer is requantized in place, so every operator sharing it
    sees the new scale. A too small output scale is fixed on the producer
    side with output_scale = input_scale * weight_scale + output_margin.
    threshold is the tolerance of that output requantization. With the
    default of 0.0 the output scale always ends up above the product.

    Returns True when the bias or the output edge was changed.
    """
    updated = _restrict_output_bias_scale(
        model_ir,
        operator,
        input_name,
        weight_name,
        bias_name,
        output_name,
        bias_threshold=bias_threshold,
        output_margin=output_margin,
        threshold=threshold,
    )
    return updated["bias"] or updated["output"]


def _restrict_rescale_bias(
    model_ir: ModelIR,
    operator: OperatorIR,
    controls: Dict[str, Any],
    stats: Dict[str, int],
) -> None:
    updated = _restrict_output_bias_scale(
        model_ir,
        operator,
        operator.inputs[0],
        operator.inputs[1],
        operator.inputs[2],
        operator.outputs[0],
        bias_threshold=controls["bias_scale_threshold"],
        output_margin=controls["output_scale_margin"],
    )
    stats["rescaled_biases"] += int(updated["bias"])
    stats["requantized_outputs"] += int(updated["output"])


def _restrict_align_inputs_except_last(
    model_ir: ModelIR,
    operator: OperatorIR,
    controls: Dict[str, Any],
    stats: Dict[str, int],
) -> None:
    # The last input is left as it is.
    for i in range(len(operator.inputs) - 1):
        stats["requantized_inputs"] += int(
            restrict_input_output_scale_to_reference(
                model_ir,
                operator,
                operator.inputs[i],
                operator.outputs[0],
                is_output=False,
                threshold=controls["scale_threshold"],
            )
        )


def _restrict_align_first_input(
    model_ir: ModelIR,
    operator: OperatorIR,
    controls: Dict[str, Any],
    stats: Dict[str, int],
) -> None:
    stats["requantized_inputs"] += int(
        restrict_input_output_scale_to_reference(
            model_ir,
            operator,
            operator.inputs[0],
            operator.outputs[0],
            is_output=False,
            threshold=controls["scale_threshold"],
        )
    )


def _restrict_align_outputs(
    model_ir: ModelIR,
    operator: OperatorIR,
    controls: Dict[str, Any],
    stats: Dict[str, int],
) -> None:
    for i in range(len(operator.outputs)):
        stats["requantized_outputs"] += int(
            restrict_input_output_scale_to_reference(
                model_ir,
                operator,
                operator.outputs[i],
                operator.inputs[0],
                is_output=True,
                threshold=controls["scale_threshold"],
            )
        )


def _restrict_nothing(
    model_ir: ModelIR,
    operator: OperatorIR,
    controls: Dict[str, Any],
    stats: Dict[str, int],
) -> None:
    return


_POLICY_HANDLERS: Dict[RestrictionPolicy, Callable[[ModelIR, OperatorIR, Dict[str, Any], Dict[str, int]], None]] = {
    RestrictionPolicy.RESCALE_BIAS: _restrict_rescale_bias,
    RestrictionPolicy.ALIGN_INPUTS_EXCEPT_LAST: _restrict_align_inputs_except_last,
    RestrictionPolicy.ALIGN_FIRST_INPUT: _restrict_align_first_input,
    RestrictionPolicy.ALIGN_OUTPUTS: _restrict_align_outputs,
    RestrictionPolicy.NONE: _restrict_nothing,
}

check_policy_registry(_POLICY_HANDLERS)


def apply_restrict_input_output_quant_params(
    model_ir: ModelIR,
    **kwargs: Any,
) -> Dict[str, int]:
    """
    Restrict the quantization parameters of model_ir for fixed-point targets
    that need equal parameters across connected tensors.

    Operators are visited once in topological order, so every upstream
    tensor already carries its final parameters when an operator is reached.
    The graph is modified in place. A QuantParamsRestrictionError leaves it
    partially rewritten and it must be discarded.

    Parameters
    ----------
    model_ir: ModelIR
        Quantized model to restrict.

    scale_threshold: Optional[float]
        Largest scale difference treated as equal.\n
        Default: 1e-5 (env: QRESTRICT_SCALE_THRESHOLD)

    bias_scale_threshold: Optional[float]
        Largest difference between bias_scale and input_scale * weight_scale
        left untouched.\n
        Default: 1e-6 (env: QRESTRICT_BIAS_SCALE_THRESHOLD)

    output_scale_margin: Optional[float]
        Added to input_scale * weight_scale when the output scale has to be raised.\n
        Default: 1e-6 (env: QRESTRICT_OUTPUT_SCALE_MARGIN)

    verbosity: Optional[str]
        "debug", "info", "warn" or "error". None keeps the current level.

    Returns
    ----------
    stats: Dict[str, int]
        visited_operators, rescaled_biases, requantized_inputs, requantized_outputs
    """
    controls = resolve_restriction_controls(kwargs)
    if controls["verbosity"] is not None:
        set_log_level(controls["verbosity"])

    stats = {
        "visited_operators": 0,
        "rescaled_biases": 0,
        "requantized_inputs": 0,
        "requantized_outputs": 0,
    }
    operators = sort_operators_in_topological_order(model_ir)
    for operator in operators:
        debug(f"Converting {operation_type_to_string(operator.op_type)} ...")
        entry = resolve_operator_policy(operator)
        _POLICY_HANDLERS[entry.policy](model_ir, operator, controls, stats)
        stats["visited_operators"] += 1
    info(
        Color.GREEN(
            f"Restricted quantization params of {stats['visited_operators']} operators: "
            f"rescaled_biases={stats['rescaled_biases']} "
            f"requantized_inputs={stats['requantized_inputs']} "
            f"requantized_outputs={stats['requantized_outputs']}"
        )
    )
    return stats


def restrict_input_output_quant_params(model_ir: ModelIR, **kwargs: Any) -> None:
    apply_restrict_input_output_quant_params(model_ir, **kwargs)


def register_restrict_input_output_quant_params_pass() -> None:
    register_optimizer_pass(
        pass_id=RESTRICT_INPUT_OUTPUT_QUANT_PARAMS_PASS_ID,
        callback=apply_restrict_input_output_quant_params,
        overwrite=True,
    )
