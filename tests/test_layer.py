"""
test_layer.py
~~~~~~~~~~~~~

Unit tests for a single Layer: forward pass, error, gradient and update.
"""

import pytest
import numpy as np

from mynet.layer import Layer, LayerRole, LayerSpec, LayerTrace, PassContext
from mynet.matrix import Matrix


def fixed_layer(weights, biases, activation='relu', role=LayerRole.HIDDEN):
    """Build a layer with the given weights and biases instead of random ones."""
    weights = Matrix.from_rows(weights)
    layer = Layer(weights.cols, weights.rows, activation, role)
    layer.weights = weights
    layer.biases = Matrix.from_array(biases)
    return layer


@pytest.mark.unit
class TestLayerConstruction:
    """Test layer shapes and construction."""

    def test_weight_and_bias_shapes(self):
        """Test that weights are output x input and biases output x 1."""
        layer = Layer(5, 3, 'sigmoid', LayerRole.HIDDEN, np.random.default_rng(0))
        assert layer.weights.shape == (3, 5)
        assert layer.biases.shape == (3, 1)

    def test_from_spec(self):
        """Test building a layer from a LayerSpec."""
        spec = LayerSpec(4, 2, 'relu', LayerRole.OUTPUT)
        layer = Layer.from_spec(spec)
        assert (layer.input_size, layer.output_size) == (4, 2)
        assert layer.role is LayerRole.OUTPUT
        assert layer.activation.name == 'relu'

    def test_non_positive_sizes_rejected(self):
        """Test that zero-sized layers raise ValueError."""
        with pytest.raises(ValueError):
            Layer(0, 3)

    def test_pass_context_creates_one_trace_per_layer(self):
        """Test that PassContext.for_layers allocates empty traces."""
        context = PassContext.for_layers(3)
        assert len(context.traces) == 3
        assert context.outputs == [None, None, None]


@pytest.mark.unit
class TestLayerForward:
    """Test forward propagation through one layer."""

    def test_input_layer_passes_input_through(self):
        """Test that an INPUT layer returns its input object unchanged."""
        layer = Layer(3, 3, 'relu', LayerRole.INPUT)
        inputs = Matrix.from_array([0.1, -0.2, 0.3])
        trace = LayerTrace()

        output = layer.forward(inputs, trace)

        assert output is inputs
        assert output.to_array() == [0.1, -0.2, 0.3]
        assert trace.last_output is inputs

    def test_hidden_layer_applies_weights_bias_activation(self):
        """Test relu(W x + b) against a hand-computed value."""
        layer = fixed_layer([[1, 2], [3, -4]], [0.5, -1])
        trace = LayerTrace()

        output = layer.forward(Matrix.from_array([1, 2]), trace)

        # [1*1 + 2*2 + 0.5, 3*1 - 4*2 - 1] = [5.5, -6] -> relu
        assert output.to_array() == [5.5, 0.0]
        assert trace.last_input.to_array() == [1.0, 2.0]
        assert trace.last_output is output

    def test_forward_does_not_modify_input(self):
        """Test that a transforming layer leaves its input matrix alone."""
        layer = fixed_layer([[2, 0], [0, 2]], [1, 1])
        inputs = Matrix.from_array([1, 1])
        layer.forward(inputs)
        assert inputs.to_array() == [1.0, 1.0]


@pytest.mark.unit
class TestLayerBackward:
    """Test error, gradient and weight update."""

    def test_output_error_is_target_minus_output(self):
        """Test that the OUTPUT layer error is target - last output."""
        layer = fixed_layer([[1, 0], [0, 1]], [0, 0], 'relu', LayerRole.OUTPUT)
        trace = LayerTrace()
        layer.forward(Matrix.from_array([0.25, 0.75]), trace)

        error = layer.backward_error(Matrix.from_array([1, 0]), trace)

        assert error.to_array() == [0.75, -0.75]
        assert trace.error is error

    def test_hidden_error_uses_later_layer_weights(self):
        """Test that hidden error is later_weights^T x later_error."""
        hidden = fixed_layer([[1, 0], [0, 1]], [0, 0])
        later = fixed_layer([[1, 2]], [0], 'sigmoid', LayerRole.OUTPUT)
        later_trace = LayerTrace(error=Matrix.from_array([0.5]))
        trace = LayerTrace()

        error = hidden.backward_error(Matrix.from_array([1]), trace, later, later_trace)

        assert error.to_array() == [0.5, 1.0]

    def test_hidden_error_requires_later_error(self):
        """Test that a hidden layer cannot compute error out of order."""
        hidden = fixed_layer([[1]], [0])
        later = fixed_layer([[1]], [0], 'sigmoid', LayerRole.OUTPUT)
        with pytest.raises(ValueError):
            hidden.backward_error(Matrix.from_array([1]), LayerTrace(), later, LayerTrace())

    def test_gradient_and_update_hand_computed(self):
        """Test one sigmoid unit: w=0, b=0, x=2, target=1, lr=1."""
        layer = fixed_layer([[0]], [0], 'sigmoid', LayerRole.OUTPUT)
        trace = LayerTrace()
        inputs = Matrix.from_array([2])

        layer.forward(inputs, trace)
        layer.backward_error(Matrix.from_array([1]), trace)
        gradient = layer.compute_gradient(1.0, trace)
        layer.apply_gradient(inputs, trace)

        # output 0.5, error 0.5, derivative 0.25 -> gradient 0.125
        assert gradient.to_array() == [0.125]
        assert layer.weights.to_array() == [0.25]
        assert layer.biases.to_array() == [0.125]

    def test_compute_gradient_does_not_modify_error(self):
        """Test that the recorded error survives the gradient computation."""
        layer = fixed_layer([[0]], [0], 'sigmoid', LayerRole.OUTPUT)
        trace = LayerTrace()
        layer.forward(Matrix.from_array([1]), trace)
        layer.backward_error(Matrix.from_array([1]), trace)

        layer.compute_gradient(0.5, trace)

        assert trace.error.to_array() == [0.5]

    def test_apply_gradient_requires_gradient(self):
        """Test that updating before computing a gradient fails."""
        layer = fixed_layer([[1]], [0])
        with pytest.raises(ValueError):
            layer.apply_gradient(Matrix.from_array([1]), LayerTrace())
