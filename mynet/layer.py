"""
layer.py
~~~~~~~~

A single fully-connected layer and the per-pass state it reads and writes.

Weights and biases are the only persistent, learned state of a layer. The
values produced during one forward/backward pass (inputs, outputs, errors,
gradients) live in a ``LayerTrace`` owned by a ``PassContext`` so that a
layer can be reused across independent passes.
"""

import enum
from dataclasses import dataclass, field
from typing import List, Optional

import numpy as np

from mynet.activations import ActivationFunction, ActivationLike, get_activation
from mynet.matrix import Matrix


class LayerRole(enum.Enum):
    INPUT = 1
    HIDDEN = 2
    OUTPUT = 3


@dataclass(frozen=True)
class LayerSpec:
    """Construction parameters for one layer."""
    input_size: int
    output_size: int
    activation: ActivationLike
    role: LayerRole


@dataclass
class LayerTrace:
    """Values recorded for one layer during a single pass."""
    last_input: Optional[Matrix] = None
    last_output: Optional[Matrix] = None
    error: Optional[Matrix] = None
    gradient: Optional[Matrix] = None


@dataclass
class PassContext:
    """One ``LayerTrace`` per layer, in network order."""
    traces: List[LayerTrace] = field(default_factory=list)

    @classmethod
    def for_layers(cls, count: int) -> 'PassContext':
        return cls([LayerTrace() for _ in range(count)])

    @property
    def outputs(self) -> List[Matrix]:
        return [trace.last_output for trace in self.traces]


class Layer:
    """
    Fully-connected layer computing ``activation(weights x input + biases)``.

    INPUT layers pass their input through untouched; their weights exist
    but are never applied or updated.
    """

    def __init__(
        self,
        input_size: int,
        output_size: int,
        activation: ActivationLike = 'sigmoid',
        role: LayerRole = LayerRole.HIDDEN,
        rng: Optional[np.random.Generator] = None
    ):
        if input_size < 1 or output_size < 1:
            raise ValueError(
                f"Layer sizes must be positive, got {input_size}->{output_size}"
            )
        self.input_size = input_size
        self.output_size = output_size
        self.role = role
        self.activation: ActivationFunction = get_activation(activation)
        self.weights = Matrix.randomize(output_size, input_size, rng)
        self.biases = Matrix.randomize(output_size, 1, rng)

    @classmethod
    def from_spec(cls, spec: LayerSpec, rng: Optional[np.random.Generator] = None) -> 'Layer':
        return cls(spec.input_size, spec.output_size, spec.activation, spec.role, rng)

    def forward(self, inputs: Matrix, trace: Optional[LayerTrace] = None) -> Matrix:
        """
        Propagate ``inputs`` (an ``input_size x 1`` column) through the layer.

        Args:
            inputs: Output of the previous layer, or the raw network input
            trace: Where to record the input and output of this pass

        Returns:
            The layer output; for INPUT layers, ``inputs`` itself
        """
        trace = trace if trace is not None else LayerTrace()
        trace.last_input = inputs
        if self.role is LayerRole.INPUT:
            trace.last_output = inputs
            return inputs

        weighted = self.weights.matrix_product(inputs)
        output = weighted.add_matrix(self.biases).map(self.activation.activation)
        trace.last_output = output
        return output

    def backward_error(
        self,
        target: Matrix,
        trace: LayerTrace,
        later_layer: Optional['Layer'] = None,
        later_trace: Optional[LayerTrace] = None
    ) -> Matrix:
        """
        Compute this layer's error signal and record it in ``trace``.

        OUTPUT layers compare against ``target``; any other layer pulls the
        error back from the next layer toward the output, which must already
        have been processed.
        """
        if self.role is LayerRole.OUTPUT:
            if trace.last_output is None:
                raise ValueError("backward_error called before forward")
            trace.error = target.add_matrix(trace.last_output.scalar_multiply(-1))
            return trace.error

        if later_layer is None or later_trace is None or later_trace.error is None:
            raise ValueError(
                "Hidden layer error needs the later layer and its computed error"
            )
        trace.error = later_layer.weights.transpose().matrix_product(later_trace.error)
        return trace.error

    def compute_gradient(self, learning_rate: float, trace: LayerTrace) -> Matrix:
        """Record ``derivative(output) * error * learning_rate`` in ``trace``."""
        if trace.last_output is None or trace.error is None:
            raise ValueError("compute_gradient needs a completed forward and backward pass")
        gradient = trace.last_output.map(self.activation.derivative)
        gradient.elementwise_multiply_inplace(trace.error)
        gradient.scalar_multiply_inplace(learning_rate)
        trace.gradient = gradient
        return gradient

    def apply_gradient(self, earlier_output: Matrix, trace: LayerTrace) -> None:
        """
        Update weights and biases in place from the recorded gradient.

        Args:
            earlier_output: Output of the layer one step closer to the input
            trace: Trace holding this layer's gradient
        """
        if trace.gradient is None:
            raise ValueError("apply_gradient called before compute_gradient")
        delta = trace.gradient.matrix_product(earlier_output.transpose())
        self.weights.add_matrix_inplace(delta)
        self.biases.add_matrix_inplace(trace.gradient)

    def __repr__(self) -> str:
        return (
            f"Layer({self.input_size}->{self.output_size}, "
            f"{self.activation.name}, {self.role.name})"
        )
