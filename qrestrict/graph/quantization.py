from __future__ import annotations

from typing import Union

import numpy as np

from qrestrict.graph.ir import TensorIR
from qrestrict.utils.enums import QuantType


def get_quant_type(tensor: TensorIR) -> QuantType:
    if tensor.quantization is None:
        return QuantType.NONE
    return QuantType(tensor.quantization.quant_type)


def is_asymm_per_layer_quant_type(tensor: TensorIR) -> bool:
    return get_quant_type(tensor) == QuantType.ASYMM_PER_LAYER


def is_symm_per_layer_quant_type(tensor: TensorIR) -> bool:
    return get_quant_type(tensor) == QuantType.SYMM_PER_LAYER


def get_per_layer_scale(tensor: TensorIR) -> float:
    if tensor.quantization is None or len(tensor.quantization.scale) != 1:
        raise ValueError(
            f"Tensor {tensor.name} does not carry per-layer quantization parameters."
        )
    return float(tensor.quantization.scale[0])


def get_per_layer_zero_point(tensor: TensorIR) -> int:
    if tensor.quantization is None or len(tensor.quantization.zero_point) != 1:
        raise ValueError(
            f"Tensor {tensor.name} does not carry per-layer quantization parameters."
        )
    return int(tensor.quantization.zero_point[0])


def _round_half_away_from_zero(values: np.ndarray) -> np.ndarray:
    return np.sign(values) * np.floor(np.abs(values) + 0.5)


def dequantize_data(
    data: np.ndarray,
    scale: float,
    zero_point: int = 0,
) -> np.ndarray:
    q = np.asarray(data).astype(np.float64)
    return ((q - float(zero_point)) * float(scale)).astype(np.float32)


def quantize_data(
    values: np.ndarray,
    scale: float,
    zero_point: int = 0,
    dtype: Union[str, np.dtype, type] = np.int32,
) -> np.ndarray:
    if not float(scale) > 0.0:
        raise ValueError(f"Quantization scale must be positive. got: {scale}")
    target_dtype = np.dtype(dtype)
    if not np.issubdtype(target_dtype, np.integer):
        raise ValueError(f"Quantized dtype must be an integer type. got: {target_dtype}")
    dtype_info = np.iinfo(target_dtype)
    v = np.asarray(values, dtype=np.float64)
    q = _round_half_away_from_zero(v / float(scale)) + int(zero_point)
    q = np.clip(q, dtype_info.min, dtype_info.max)
    return q.astype(target_dtype)
