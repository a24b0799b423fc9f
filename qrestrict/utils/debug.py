from __future__ import annotations

import html
from typing import List, Optional

from qrestrict.graph.ir import ModelIR, QuantParamIR
from qrestrict.utils.enums import to_operation_type


def operation_type_to_string(op_type) -> str:
    known = to_operation_type(op_type)
    if known is None:
        return f"UNKNOWN({op_type})"
    return known.value


def quant_params_to_string(quant_params: Optional[QuantParamIR]) -> str:
    if quant_params is None:
        return "NONE"
    scales = ",".join(f"{float(s):g}" for s in quant_params.scale)
    zero_points = ",".join(str(int(z)) for z in quant_params.zero_point)
    return f"{quant_params.quant_type.value}(scale=[{scales}] zero_point=[{zero_points}])"


def operand_id_to_string(model_ir: ModelIR, tensor_name: str) -> str:
    tensor = model_ir.tensors.get(tensor_name, None)
    if tensor is None:
        return f"@{tensor_name}(missing)"
    kind = "const" if tensor.data is not None else "var"
    return f"@{tensor.name}({kind} {tensor.dtype} {list(tensor.shape)})"


def _dot_id(prefix: str, value: str) -> str:
    return '"' + f"{prefix}:{value}".replace('"', '\\"') + '"'


def visualize_model_ir(model_ir: ModelIR) -> str:
    """
    Render model_ir as Graphviz DOT text.

    Operators are boxes, tensors are ellipses labelled with their
    quantization parameters. Constant tensors are drawn dashed.
    """
    lines: List[str] = [
        f"digraph {_dot_id('model', model_ir.name)} {{",
        "  rankdir=TB;",
    ]
    for name, tensor in model_ir.tensors.items():
        label = html.escape(f"{name}\\n{quant_params_to_string(tensor.quantization)}")
        style = "dashed" if tensor.data is not None else "solid"
        lines.append(
            f'  {_dot_id("t", name)} [shape=ellipse, style={style}, label="{label}"];'
        )
    for op_idx, op in enumerate(model_ir.operators):
        op_id = _dot_id("op", str(op_idx))
        label = html.escape(f"#{op_idx} {operation_type_to_string(op.op_type)}")
        lines.append(f'  {op_id} [shape=box, label="{label}"];')
        for in_idx, input_name in enumerate(op.inputs):
            lines.append(f'  {_dot_id("t", input_name)} -> {op_id} [label="{in_idx}"];')
        for out_idx, output_name in enumerate(op.outputs):
            lines.append(f'  {op_id} -> {_dot_id("t", output_name)} [label="{out_idx}"];')
    lines.append("}")
    return "\n".join(lines) + "\n"
