"""JAX configuration for flux modules: 64-bit precision and device selection."""

import os
from typing import Optional

_device_configured = False


def select_device(device: Optional[str] = None) -> Optional[str]:
    """Restrict JAX to a device before it initialises its backends.

    Parameters
    ----------
    device : str, optional
        - None or "auto": leave the JAX default alone
        - "cpu": force the CPU backend
        - "0", "cuda:1", "gpu:0": a specific GPU index

    Returns
    -------
    str or None
        The value written to the environment, or None if nothing changed.

    Notes
    -----
    Sets CUDA_VISIBLE_DEVICES, so it only has an effect before the first
    JAX computation initialises the backends.
    """
    global _device_configured

    if _device_configured or device is None or device == "auto":
        return None

    device_str = device.lower()
    if device_str == "cpu":
        os.environ['CUDA_VISIBLE_DEVICES'] = ''
        _device_configured = True
        return 'cpu'

    for prefix in ['cuda:', 'gpu:']:
        if device_str.startswith(prefix):
            device_str = device_str[len(prefix):]
            break

    try:
        gpu_id = int(device_str)
    except ValueError:
        raise ValueError(f"Invalid device specification: {device}. "
                         f"Use 'auto', 'cpu', or GPU index (e.g., '0', 'cuda:1')")
    os.environ['CUDA_VISIBLE_DEVICES'] = str(gpu_id)
    _device_configured = True
    return str(gpu_id)


import jax
import jax.numpy as jnp

jax.config.update("jax_enable_x64", True)


def get_device_info() -> str:
    """Get available JAX devices as string."""
    devices = jax.devices()
    device_strs = [f"{d.platform}:{d.id}" for d in devices]
    return f"JAX devices: {device_strs}"


__all__ = ['jax', 'jnp', 'get_device_info', 'select_device']
