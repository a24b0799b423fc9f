from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import numpy as np

from qrestrict.utils.enums import QuantType


@dataclass
class QuantParamIR:
    quant_type: QuantType
    scale: List[float]
    zero_point: List[int]
    quantized_dimension: int = 0


@dataclass
class TensorIR:
    name: str
    dtype: str
    shape: List[int]
    data: Optional[np.ndarray] = None
    quantization: Optional[QuantParamIR] = None


@dataclass
class OperatorIR:
    op_type: str
    inputs: List[str]
    outputs: List[str]
    options: Dict[str, Any] = field(default_factory=dict)
    name: str = ""


@dataclass
class ModelIR:
    name: str
    description: str = "qrestrict"
    tensors: Dict[str, TensorIR] = field(default_factory=dict)
    operators: List[OperatorIR] = field(default_factory=list)
    inputs: List[str] = field(default_factory=list)
    outputs: List[str] = field(default_factory=list)

    def get_tensor(self, name: str) -> TensorIR:
        tensor = self.tensors.get(name, None)
        if tensor is None:
            raise ValueError(f"Tensor is not registered in model {self.name}: {name}")
        return tensor


def make_asymm_per_layer_quant_params(scale: float, zero_point: int) -> QuantParamIR:
    if not float(scale) > 0.0:
        raise ValueError(f"Quantization scale must be positive. got: {scale}")
    return QuantParamIR(
        quant_type=QuantType.ASYMM_PER_LAYER,
        scale=[float(scale)],
        zero_point=[int(zero_point)],
    )


def make_symm_per_layer_quant_params(scale: float) -> QuantParamIR:
    if not float(scale) > 0.0:
        raise ValueError(f"Quantization scale must be positive. got: {scale}")
    return QuantParamIR(
        quant_type=QuantType.SYMM_PER_LAYER,
        scale=[float(scale)],
        zero_point=[0],
    )


def clone_quant_params(quant_params: Optional[QuantParamIR]) -> Optional[QuantParamIR]:
    if quant_params is None:
        return None
    return QuantParamIR(
        quant_type=quant_params.quant_type,
        scale=list(quant_params.scale),
        zero_point=list(quant_params.zero_point),
        quantized_dimension=int(quant_params.quantized_dimension),
    )


def clone_model_ir(model_ir: ModelIR) -> ModelIR:
    clone = ModelIR(
        name=model_ir.name,
        description=model_ir.description,
    )
    clone.inputs = list(model_ir.inputs)
    clone.outputs = list(model_ir.outputs)
    clone.operators = [
        OperatorIR(
            op_type=op.op_type,
            inputs=list(op.inputs),
            outputs=list(op.outputs),
            options=dict(op.options),
            name=op.name,
        )
        for op in model_ir.operators
    ]
    for name, tensor in model_ir.tensors.items():
        clone.tensors[name] = TensorIR(
            name=tensor.name,
            dtype=tensor.dtype,
            shape=list(tensor.shape),
            data=tensor.data.copy() if isinstance(tensor.data, np.ndarray) else tensor.data,
            quantization=clone_quant_params(tensor.quantization),
        )
    return clone
