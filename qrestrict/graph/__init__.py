from __future__ import annotations

from qrestrict.graph.ir import (
    ModelIR,
    OperatorIR,
    QuantParamIR,
    TensorIR,
    clone_model_ir,
    make_asymm_per_layer_quant_params,
    make_symm_per_layer_quant_params,
)
from qrestrict.graph.modeling import (
    append_requant_operator,
    build_tensor_consumer_map,
    build_tensor_producer_map,
    insert_requant_operator,
    sort_operators_in_topological_order,
    update_operator_input_tensors,
    update_operator_output_tensors,
)
from qrestrict.graph.quantization import dequantize_data, quantize_data

__all__ = [
    "ModelIR",
    "OperatorIR",
    "QuantParamIR",
    "TensorIR",
    "append_requant_operator",
    "build_tensor_consumer_map",
    "build_tensor_producer_map",
    "clone_model_ir",
    "dequantize_data",
    "insert_requant_operator",
    "make_asymm_per_layer_quant_params",
    "make_symm_per_layer_quant_params",
    "quantize_data",
    "sort_operators_in_topological_order",
    "update_operator_input_tensors",
    "update_operator_output_tensors",
]
