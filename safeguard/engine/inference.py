import asyncio
import logging
import os
import time

import numpy as np
import tensorflow as tf

from safeguard.config import SCREAM_MODEL_PATH, MODEL_INPUT_SAMPLES, MAX_LATENCY_MS

logger = logging.getLogger(__name__)


class ScreamScorer:
    """
    Scores raw int16 PCM with a TFLite scream model (MFCC front end is inside the model).
    Handles int16 -> float normalisation and int8/uint8 input quantization.
    """
    def __init__(self, model_path=SCREAM_MODEL_PATH):
        self.model_path = model_path
        self.interpreter = None
        self.input_details = None
        self.output_details = None
        self.is_quantized_input = False
        self.is_quantized_output = False
        self.input_scale = 1.0
        self.input_zero_point = 0

    @property
    def is_loaded(self):
        return self.interpreter is not None

    def load_model(self, model_path=None):
        """
        Load the TFLite scream model. Replaces any previously loaded model.
        """
        if model_path is not None:
            self.model_path = model_path

        if not os.path.exists(self.model_path):
            raise FileNotFoundError(f"Model file not found: {self.model_path}")

        self.close()

        with open(self.model_path, 'rb') as f:
            tflite_model = f.read()

        self.interpreter = tf.lite.Interpreter(model_content=tflite_model)
        self.interpreter.allocate_tensors()

        self.input_details = self.interpreter.get_input_details()
        self.output_details = self.interpreter.get_output_details()

        input_dtype = self.input_details[0]['dtype']
        self.is_quantized_input = input_dtype in (np.int8, np.uint8)
        self.is_quantized_output = self.output_details[0]['dtype'] in (np.int8, np.uint8)

        scale, zero_point = self.input_details[0].get('quantization', (0.0, 0))
        self.input_scale = float(scale) if scale else 0.0
        self.input_zero_point = int(zero_point)

        logger.info("Scream model loaded successfully")
        logger.info(f"Input shape: {self.input_details[0]['shape']}")
        logger.info(f"Input dtype: {input_dtype} (quantized={self.is_quantized_input})")

    def close(self):
        self.interpreter = None
        self.input_details = None
        self.output_details = None

    def input_length(self):
        """
        Number of PCM samples the model expects
        """
        shape = list(self.input_details[0]['shape']) if self.input_details else []
        if not shape:
            return MODEL_INPUT_SAMPLES
        return int(shape[-1])

    def predict_from_int16(self, int16_samples):
        """
        Score mono int16 PCM. Shorter input is zero-padded, longer is truncated.
        Returns the model's scream confidence in [0, 1].
        """
        if self.interpreter is None:
            raise RuntimeError("Model not loaded. Call load_model() first.")

        target_len = self.input_length()
        samples = np.asarray(int16_samples, dtype=np.float32)[:target_len]
        audio = np.zeros(target_len, dtype=np.float32)
        audio[:len(samples)] = samples / 32768.0

        input_dtype = self.input_details[0]['dtype']
        if self.is_quantized_input:
            # Symmetric mapping when the model carries no usable scale
            scale = self.input_scale if self.input_scale != 0.0 else 1.0 / 128.0
            info = np.iinfo(input_dtype)
            quantized = np.round(audio / scale + self.input_zero_point)
            input_data = np.clip(quantized, info.min, info.max).astype(input_dtype)
        else:
            input_data = audio.astype(input_dtype)

        input_data = input_data.reshape(self.input_details[0]['shape'])
        self.interpreter.set_tensor(self.input_details[0]['index'], input_data)
        self.interpreter.invoke()

        output_data = self.interpreter.get_tensor(self.output_details[0]['index'])

        if self.is_quantized_output:
            output_scale, output_zero_point = self.output_details[0]['quantization']
            output_data = (output_data.astype(np.float32) - output_zero_point) * output_scale

        return float(np.asarray(output_data).reshape(-1)[0])

    async def score(self, pcm):
        """
        Awaitable scoring; inference runs off the event loop thread.
        """
        return await asyncio.to_thread(self.predict_from_int16, pcm)

    def get_model_info(self):
        """
        Get model information for monitoring.
        """
        if self.interpreter is None:
            return {"status": "Model not loaded"}

        return {
            "model_path": self.model_path,
            "input_shape": np.asarray(self.input_details[0]['shape']).tolist(),
            "output_shape": np.asarray(self.output_details[0]['shape']).tolist(),
            "input_dtype": str(self.input_details[0]['dtype']),
            "output_dtype": str(self.output_details[0]['dtype']),
            "quantized": self.is_quantized_input
        }

    def benchmark_latency(self, num_runs=100):
        """
        Benchmark model latency on random PCM.
        """
        if self.interpreter is None:
            raise RuntimeError("Model not loaded")

        latencies = []
        dummy_pcm = np.random.randint(-32768, 32767, size=self.input_length(), dtype=np.int16)

        for _ in range(num_runs):
            start_time = time.time()
            self.predict_from_int16(dummy_pcm)
            latency = (time.time() - start_time) * 1000  # Convert to ms
            latencies.append(latency)

        avg_latency = np.mean(latencies)
        max_latency = np.max(latencies)

        logger.info(f"Average latency: {avg_latency:.2f} ms")
        logger.info(f"Max latency: {max_latency:.2f} ms")

        return {
            'average_latency_ms': avg_latency,
            'max_latency_ms': max_latency,
            'meets_target': avg_latency < MAX_LATENCY_MS
        }
