from qrestrict.graph.ir import (
    ModelIR,
    OperatorIR,
    QuantParamIR,
    TensorIR,
    make_asymm_per_layer_quant_params,
    make_symm_per_layer_quant_params,
)
from qrestrict.optimizer.policy_registry import QuantParamsRestrictionError
from qrestrict.optimizer.restrict_input_output_quant_params import (
    restrict_input_output_quant_params,
)
from qrestrict.utils.enums import OperationType, QuantType

__version__ = '0.1.0'

__all__ = [
    "ModelIR",
    "OperationType",
    "OperatorIR",
    "QuantParamIR",
    "QuantParamsRestrictionError",
    "QuantType",
    "TensorIR",
    "make_asymm_per_layer_quant_params",
    "make_symm_per_layer_quant_params",
    "restrict_input_output_quant_params",
]
