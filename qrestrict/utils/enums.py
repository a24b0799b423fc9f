from enum import Enum
from typing import Optional


class QuantType(str, Enum):
    NONE              = 'NONE'
    ASYMM_PER_LAYER   = 'ASYMM_PER_LAYER'
    SYMM_PER_LAYER    = 'SYMM_PER_LAYER'
    ASYMM_PER_CHANNEL = 'ASYMM_PER_CHANNEL'
    SYMM_PER_CHANNEL  = 'SYMM_PER_CHANNEL'


class OperationType(str, Enum):
    ABS                      = 'ABS'
    ADAPTIVE_AVERAGE_POOL_2D = 'ADAPTIVE_AVERAGE_POOL_2D'
    ADAPTIVE_MAX_POOL_2D     = 'ADAPTIVE_MAX_POOL_2D'
    ADD                      = 'ADD'
    ARG_MAX                  = 'ARG_MAX'
    ARG_MIN                  = 'ARG_MIN'
    AVERAGE_POOL_2D          = 'AVERAGE_POOL_2D'
    BATCH_NORMALIZATION      = 'BATCH_NORMALIZATION'
    CAST                     = 'CAST'
    CHANNEL_SHUFFLE          = 'CHANNEL_SHUFFLE'
    CLIP                     = 'CLIP'
    CONCAT                   = 'CONCAT'
    CONV_2D                  = 'CONV_2D'
    CONV_2D_TRANSPOSE        = 'CONV_2D_TRANSPOSE'
    DEQUANTIZE               = 'DEQUANTIZE'
    DIV                      = 'DIV'
    EXP                      = 'EXP'
    EXPAND                   = 'EXPAND'
    FILL                     = 'FILL'
    FLATTEN                  = 'FLATTEN'
    FULLY_CONNECTED          = 'FULLY_CONNECTED'
    GATHER                   = 'GATHER'
    GELU                     = 'GELU'
    HARD_SIGMOID             = 'HARD_SIGMOID'
    HARD_SWISH               = 'HARD_SWISH'
    INSTANCE_NORMALIZATION   = 'INSTANCE_NORMALIZATION'
    LAYER_NORMALIZATION      = 'LAYER_NORMALIZATION'
    LEAKY_RELU               = 'LEAKY_RELU'
    LOG                      = 'LOG'
    LOG_SOFTMAX              = 'LOG_SOFTMAX'
    MAT_MUL                  = 'MAT_MUL'
    MAX                      = 'MAX'
    MAX_POOL_2D              = 'MAX_POOL_2D'
    MIN                      = 'MIN'
    MUL                      = 'MUL'
    PAD                      = 'PAD'
    POW                      = 'POW'
    PRELU                    = 'PRELU'
    QUANTIZE                 = 'QUANTIZE'
    REDUCE_MEAN              = 'REDUCE_MEAN'
    REDUCE_SUM               = 'REDUCE_SUM'
    RELU                     = 'RELU'
    RELU6                    = 'RELU6'
    REQUANTIZE               = 'REQUANTIZE'
    RESHAPE                  = 'RESHAPE'
    RESIZE_LINEAR            = 'RESIZE_LINEAR'
    RESIZE_NEAREST           = 'RESIZE_NEAREST'
    SHAPE                    = 'SHAPE'
    SIGMOID                  = 'SIGMOID'
    SLICE                    = 'SLICE'
    SOFTMAX                  = 'SOFTMAX'
    SPLIT                    = 'SPLIT'
    SQUEEZE                  = 'SQUEEZE'
    STACK                    = 'STACK'
    SUB                      = 'SUB'
    SWISH                    = 'SWISH'
    TANH                     = 'TANH'
    TILE                     = 'TILE'
    TRANSPOSE                = 'TRANSPOSE'
    UNSQUEEZE                = 'UNSQUEEZE'
    UNSTACK                  = 'UNSTACK'

    def __str__(self):
        return self.value


def to_operation_type(op_type) -> Optional['OperationType']:
    """Returns the OperationType for ``op_type``, or None for unknown kinds."""
    if isinstance(op_type, OperationType):
        return op_type
    try:
        return OperationType(str(op_type))
    except ValueError:
        return None
