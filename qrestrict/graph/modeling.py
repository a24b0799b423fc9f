from __future__ import annotations

import heapq
from typing import Dict, List, Optional, Sequence

from qrestrict.graph.ir import ModelIR, OperatorIR, QuantParamIR, TensorIR, clone_quant_params
from qrestrict.utils.enums import OperationType

REQUANTIZED_TENSOR_SUFFIX = "requantized"


def build_tensor_consumer_map(model_ir: ModelIR) -> Dict[str, List[int]]:
    consumers: Dict[str, List[int]] = {}
    for op_idx, op in enumerate(model_ir.operators):
        for input_name in op.inputs:
            if input_name not in consumers:
                consumers[input_name] = []
            consumers[input_name].append(op_idx)
    return consumers


def build_tensor_producer_map(model_ir: ModelIR) -> Dict[str, int]:
    producers: Dict[str, int] = {}
    for op_idx, op in enumerate(model_ir.operators):
        for output_name in op.outputs:
            if output_name in producers and producers[output_name] != op_idx:
                raise ValueError(
                    f"Tensor {output_name} is produced by more than one operator. "
                    f"operator_indices=[{producers[output_name]}, {op_idx}]"
                )
            producers[output_name] = op_idx
    return producers


def sort_operators_in_topological_order(model_ir: ModelIR) -> List[OperatorIR]:
    """
    Return the operators of model_ir so that every operator comes after
    the producers of all of its inputs.

    Tensors without a producer (graph inputs and constants) are available from
    the start. Ready operators are emitted by their position in
    model_ir.operators, so the result is deterministic.
    """
    producers = build_tensor_producer_map(model_ir)
    consumers = build_tensor_consumer_map(model_ir)

    pending_counts: List[int] = []
    for op in model_ir.operators:
        producer_indices = set(
            producers[input_name]
            for input_name in op.inputs
            if input_name in producers
        )
        pending_counts.append(len(producer_indices))

    ready = [op_idx for op_idx, count in enumerate(pending_counts) if count == 0]
    heapq.heapify(ready)
    sorted_indices: List[int] = []
    while len(ready) > 0:
        op_idx = heapq.heappop(ready)
        sorted_indices.append(op_idx)
        released = set()
        for output_name in model_ir.operators[op_idx].outputs:
            for consumer_idx in consumers.get(output_name, []):
                released.add(consumer_idx)
        for consumer_idx in sorted(released):
            pending_counts[consumer_idx] -= 1
            if pending_counts[consumer_idx] == 0:
                heapq.heappush(ready, consumer_idx)

    if len(sorted_indices) != len(model_ir.operators):
        unresolved = [
            model_ir.operators[op_idx].name or model_ir.operators[op_idx].op_type
            for op_idx in range(len(model_ir.operators))
            if pending_counts[op_idx] > 0
        ]
        raise ValueError(
            f"Model {model_ir.name} is not a DAG. unresolved_operators={unresolved}"
        )
    return [model_ir.operators[op_idx] for op_idx in sorted_indices]


def _find_operator_index(model_ir: ModelIR, operator: OperatorIR) -> int:
    for op_idx, op in enumerate(model_ir.operators):
        if op is operator:
            return op_idx
    raise ValueError(
        f"Operator is not registered in model {model_ir.name}: "
        f"{operator.name or operator.op_type}"
    )


def make_unique_tensor_name(base: str, tensors: Dict[str, TensorIR]) -> str:
    if base not in tensors:
        return base
    serial = 1
    while f"{base}_{serial}" in tensors:
        serial += 1
    return f"{base}_{serial}"


def _add_requantized_tensor(
    model_ir: ModelIR,
    reference_tensor: TensorIR,
    quant_params: QuantParamIR,
) -> TensorIR:
    new_name = make_unique_tensor_name(
        f"{reference_tensor.name}_{REQUANTIZED_TENSOR_SUFFIX}",
        model_ir.tensors,
    )
    new_tensor = TensorIR(
        name=new_name,
        dtype=reference_tensor.dtype,
        shape=list(reference_tensor.shape),
        data=None,
        quantization=clone_quant_params(quant_params),
    )
    model_ir.tensors[new_name] = new_tensor
    return new_tensor


def insert_requant_operator(
    model_ir: ModelIR,
    tensor_name: str,
    quant_params: QuantParamIR,
    producer: Optional[OperatorIR] = None,
) -> str:
    """
    Producer side: NEW --REQUANTIZE--> tensor_name.

    The new tensor carries quant_params and tensor_name keeps its own.
    No existing operator is rewired; the caller moves the producer's output
    edge onto the returned tensor name.
    """
    reference_tensor = model_ir.get_tensor(tensor_name)
    new_tensor = _add_requantized_tensor(model_ir, reference_tensor, quant_params)
    requant_op = OperatorIR(
        op_type=OperationType.REQUANTIZE.value,
        inputs=[new_tensor.name],
        outputs=[tensor_name],
        name=f"{new_tensor.name}_requant",
    )
    if producer is None:
        model_ir.operators.append(requant_op)
    else:
        op_idx = _find_operator_index(model_ir, producer)
        model_ir.operators.insert(op_idx + 1, requant_op)
    return new_tensor.name


def append_requant_operator(
    model_ir: ModelIR,
    tensor_name: str,
    quant_params: QuantParamIR,
    consumer: Optional[OperatorIR] = None,
) -> str:
    """
    Consumer side: tensor_name --REQUANTIZE--> NEW.

    No existing operator is rewired; the caller moves each consumer that
    should read the requantized values onto the returned tensor name.
    """
    reference_tensor = model_ir.get_tensor(tensor_name)
    new_tensor = _add_requantized_tensor(model_ir, reference_tensor, quant_params)
    requant_op = OperatorIR(
        op_type=OperationType.REQUANTIZE.value,
        inputs=[tensor_name],
        outputs=[new_tensor.name],
        name=f"{new_tensor.name}_requant",
    )
    if consumer is None:
        model_ir.operators.append(requant_op)
    else:
        op_idx = _find_operator_index(model_ir, consumer)
        model_ir.operators.insert(op_idx, requant_op)
    return new_tensor.name


def update_operator_input_tensors(
    operators: Sequence[OperatorIR],
    old_name: str,
    new_name: str,
) -> int:
    replaced = 0
    for op in operators:
        for idx, input_name in enumerate(op.inputs):
            if input_name == old_name:
                op.inputs[idx] = new_name
                replaced += 1
    return replaced


def update_operator_output_tensors(
    operators: Sequence[OperatorIR],
    old_name: str,
    new_name: str,
) -> int:
    replaced = 0
    for op in operators:
        for idx, output_name in enumerate(op.outputs):
            if output_name == old_name:
                op.outputs[idx] = new_name
                replaced += 1
    return replaced
