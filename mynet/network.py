"""
network.py
~~~~~~~~~~

Feed-forward network built from ``Layer`` objects, trained one example at a
time by plain gradient descent.

``ForwardNetwork`` only knows how to run inference. ``TrainableNetwork``
wraps a ``ForwardNetwork`` and adds loss computation, backpropagation and
the weight update.

A training step runs four phases, always to completion:

1. forward: propagate the input, recording every layer's output
2. backward: compute each layer's error, output layer first
3. loss: the output layer's error (``target - output``) is returned as is
4. update: compute each layer's gradient and apply it, output layer first

All errors are computed before any weights change, so the backward pass
always sees the weights that produced the forward pass.
"""

import logging
from typing import Any, Dict, List, Optional, Protocol, Sequence

import numpy as np

from mynet.errors import DimensionMismatchError
from mynet.layer import Layer, LayerRole, LayerSpec, PassContext
from mynet.matrix import Matrix

logger = logging.getLogger(__name__)


def arg_max(values: Sequence[float]) -> int:
    """Return the index of the first largest element of ``values``."""
    values = list(values)
    if not values:
        raise ValueError("arg_max of an empty sequence")
    return max(range(len(values)), key=values.__getitem__)


class Forwardable(Protocol):
    def predict_all(self, inputs: Sequence[float], context: Optional[PassContext] = None) -> List[Matrix]:
        ...

    def predict(self, inputs: Sequence[float]) -> List[float]:
        ...


class Trainable(Protocol):
    def fit(self, inputs: Sequence[float], target: Sequence[float]) -> Matrix:
        ...

    def predict(self, inputs: Sequence[float]) -> List[float]:
        ...

    def evaluate(self, inputs: Sequence[Sequence[float]], targets: Sequence[Sequence[float]]) -> float:
        ...


class ForwardNetwork:
    """
    An ordered stack of layers: one INPUT layer, any number of HIDDEN
    layers, one OUTPUT layer.

    Attributes:
        layers: The layers, input first
        layer_node_counts: Node count per layer, starting with the first
            non-input layer's input size and ending with the output size
    """

    def __init__(self, layers: Sequence[Layer]):
        self.layers: List[Layer] = list(layers)
        self._validate_layers()
        self.layer_node_counts: List[int] = self._count_layer_nodes()
        logger.debug(f"Created network with layer node counts {self.layer_node_counts}")

    @classmethod
    def from_specs(
        cls,
        specs: Sequence[LayerSpec],
        rng: Optional[np.random.Generator] = None
    ) -> 'ForwardNetwork':
        return cls([Layer.from_spec(spec, rng) for spec in specs])

    def _validate_layers(self) -> None:
        if len(self.layers) < 2:
            raise ValueError("A network needs at least an input and an output layer")

        roles = [layer.role for layer in self.layers]
        if roles[0] is not LayerRole.INPUT:
            raise ValueError(f"First layer must have role INPUT, got {roles[0].name}")
        if roles[-1] is not LayerRole.OUTPUT:
            raise ValueError(f"Last layer must have role OUTPUT, got {roles[-1].name}")
        for role in roles[1:-1]:
            if role is not LayerRole.HIDDEN:
                raise ValueError(f"Inner layers must have role HIDDEN, got {role.name}")

        # The input layer is a pass-through, so its input size is what the
        # first transforming layer receives.
        previous_size = self.layers[0].input_size
        for index, layer in enumerate(self.layers[1:], start=1):
            if layer.input_size != previous_size:
                raise DimensionMismatchError(
                    f"Layer {index} expects {layer.input_size} inputs "
                    f"but the previous layer produces {previous_size}"
                )
            previous_size = layer.output_size

    def _count_layer_nodes(self) -> List[int]:
        counts = []
        for layer in self.layers:
            if layer.role is LayerRole.INPUT:
                continue
            counts.append(layer.input_size)
            if layer.role is LayerRole.OUTPUT:
                counts.append(layer.output_size)
        return counts

    @property
    def input_size(self) -> int:
        return self.layers[0].input_size

    @property
    def output_size(self) -> int:
        return self.layers[-1].output_size

    def predict_all(
        self,
        inputs: Sequence[float],
        context: Optional[PassContext] = None
    ) -> List[Matrix]:
        """
        Run a forward pass and return every layer's output, input layer first.

        Args:
            inputs: Flat feature vector of length ``input_size``
            context: Pass context to record into (a fresh one if omitted)

        Raises:
            DimensionMismatchError: If ``len(inputs) != input_size``
            ValueError: If ``context`` does not hold one trace per layer
        """
        if len(inputs) != self.input_size:
            raise DimensionMismatchError(
                f"Feedforward failed: input has {len(inputs)} values, "
                f"input layer expects {self.input_size}"
            )
        if context is None:
            context = PassContext.for_layers(len(self.layers))
        elif len(context.traces) != len(self.layers):
            raise ValueError(
                f"Pass context holds {len(context.traces)} traces "
                f"but the network has {len(self.layers)} layers"
            )

        current = Matrix.from_array(inputs)
        outputs = []
        for layer, trace in zip(self.layers, context.traces):
            current = layer.forward(current, trace)
            outputs.append(current)
        return outputs

    def predict(self, inputs: Sequence[float]) -> List[float]:
        """Run a forward pass and return the output layer's values."""
        return self.predict_all(inputs)[-1].to_array()


class TrainableNetwork:
    """
    Wraps a ``ForwardNetwork`` with single-example gradient descent training.

    Args:
        network: The network whose weights are trained in place
        learning_rate: Fixed step size, must be positive
    """

    def __init__(self, network: ForwardNetwork, learning_rate: float = 0.1):
        if not learning_rate > 0:
            raise ValueError(f"learning_rate must be positive, got {learning_rate}")
        self.network = network
        self.learning_rate = float(learning_rate)

    @classmethod
    def from_specs(
        cls,
        specs: Sequence[LayerSpec],
        learning_rate: float = 0.1,
        rng: Optional[np.random.Generator] = None
    ) -> 'TrainableNetwork':
        return cls(ForwardNetwork.from_specs(specs, rng), learning_rate)

    @property
    def layers(self) -> List[Layer]:
        return self.network.layers

    @property
    def layer_node_counts(self) -> List[int]:
        return self.network.layer_node_counts

    def fit(self, inputs: Sequence[float], target: Sequence[float]) -> Matrix:
        """
        Train on one example.

        Args:
            inputs: Flat feature vector
            target: Expected output vector (typically one-hot)

        Returns:
            The output layer's error ``target - prediction`` as a column
            matrix; reducing it to a scalar is left to the caller

        Raises:
            DimensionMismatchError: If either vector has the wrong length
        """
        self._validate_training_args(inputs, target)
        context = PassContext.for_layers(len(self.layers))
        self.network.predict_all(inputs, context)
        loss = self._backpropagate(Matrix.from_array(target), context)
        self._update_weights(context)
        return loss

    def _validate_training_args(self, inputs: Sequence[float], target: Sequence[float]) -> None:
        expected_inputs = self.layer_node_counts[0]
        expected_outputs = self.layer_node_counts[-1]
        if len(inputs) != expected_inputs:
            raise DimensionMismatchError(
                f"Training failed: input has {len(inputs)} values, "
                f"input layer expects {expected_inputs}"
            )
        if len(target) != expected_outputs:
            raise DimensionMismatchError(
                f"Training failed: target has {len(target)} values, "
                f"output layer produces {expected_outputs}"
            )

    def _backpropagate(self, target: Matrix, context: PassContext) -> Matrix:
        layers, traces = self.layers, context.traces
        for index in range(len(layers) - 1, 0, -1):
            later_layer = later_trace = None
            if layers[index].role is not LayerRole.OUTPUT:
                later_layer, later_trace = layers[index + 1], traces[index + 1]
            layers[index].backward_error(target, traces[index], later_layer, later_trace)
        return traces[-1].error

    def _update_weights(self, context: PassContext) -> None:
        layers, traces = self.layers, context.traces
        for index in range(len(layers) - 1, 0, -1):
            layers[index].compute_gradient(self.learning_rate, traces[index])
            layers[index].apply_gradient(traces[index - 1].last_output, traces[index])

    def predict(self, inputs: Sequence[float]) -> List[float]:
        """Forward pass only; returns the output layer's values."""
        return self.network.predict(inputs)

    def evaluate(
        self,
        inputs: Sequence[Sequence[float]],
        targets: Sequence[Sequence[float]]
    ) -> float:
        """
        Return the fraction of examples whose predicted class matches the
        target class (both taken as ``arg_max``).
        """
        if len(inputs) != len(targets):
            raise DimensionMismatchError(
                f"Got {len(inputs)} inputs but {len(targets)} targets"
            )
        if len(inputs) == 0:
            return 0.0

        correct = 0
        for example, target in zip(inputs, targets):
            if arg_max(self.predict(example)) == arg_max(target):
                correct += 1
        return correct / len(inputs)

    def summary(self) -> Dict[str, Any]:
        """Log and return the layer node counts and learning rate."""
        info = {
            'layers': list(self.layer_node_counts),
            'learning_rate': self.learning_rate
        }
        logger.info(f"Neural network summary: layers={info['layers']}, "
                    f"learning_rate={info['learning_rate']}")
        return info
