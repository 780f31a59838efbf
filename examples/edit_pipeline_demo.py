"""
Performance demonstration for the editing pipeline.

Times each tool (rotate, crop, resize, filters, encode) on synthetic images
of increasing size, and shows that a session preview on a worker thread does
not block the caller.

Run from the repository root:
    python examples/edit_pipeline_demo.py
"""

import sys
from pathlib import Path

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

import time
from concurrent.futures import ThreadPoolExecutor

import numpy as np

from KB_Libs.ImageEditingLib import (
    EncodeSpec,
    FilterParameters,
    PixelBuffer,
    apply_filters,
    crop,
    encode,
    resize,
    rotate,
)
from KB_Libs.SessionLib import EditSession


def make_gradient(width, height):
    """Create an opaque RGB gradient buffer."""
    xs = np.linspace(0, 255, width, dtype=np.float64)
    ys = np.linspace(0, 255, height, dtype=np.float64)
    red = np.tile(xs, (height, 1))
    green = np.tile(ys[:, None], (1, width))
    blue = np.full((height, width), 128.0)
    rgb = np.stack([red, green, blue], axis=-1).round().astype(np.uint8)
    return PixelBuffer.from_array(rgb)


def time_call(label, func, iterations=3):
    """Run func a few times and print the average excluding the warmup run."""
    times = []
    for i in range(iterations):
        start = time.time()
        func()
        times.append(time.time() - start)
    average = sum(times[1:]) / len(times[1:])
    print(f"  {label:<28} {average * 1000:8.1f} ms")
    return average


def benchmark_tools(size):
    print(f"\nBenchmarking {size}x{size // 2} buffer")
    print("-" * 60)
    buffer = make_gradient(size, size // 2)
    filters = FilterParameters(brightness=120, contrast=90, saturation=50, sepia=30)

    time_call("rotate 90", lambda: rotate(buffer, 90))
    time_call("rotate 30", lambda: rotate(buffer, 30))
    time_call("crop half view", lambda: crop(buffer, (0, 0, 50, 50), 100, 100))
    time_call("resize to 50%", lambda: resize(buffer, size // 2, size // 4))
    time_call("color filters", lambda: apply_filters(buffer, filters))
    time_call("color filters + blur 4", lambda: apply_filters(buffer, FilterParameters(saturation=0, blur=4)))
    time_call("encode png", lambda: encode(buffer, EncodeSpec("png")))
    time_call("encode jpeg q=0.8", lambda: encode(buffer, EncodeSpec("jpeg", 0.8)))


def demo_async_preview():
    print("\nAsync preview")
    print("-" * 60)
    session = EditSession()
    session.load_buffer(make_gradient(2000, 1000))

    with ThreadPoolExecutor(max_workers=2) as executor:
        start = time.time()
        first = session.preview_async(executor, "filters", blur=8)
        second = session.preview_async(executor, "filters", blur=2)
        print(f"  submitted in {(time.time() - start) * 1000:.1f} ms")

        for label, future in (("blur=8", first), ("blur=2", second)):
            result = future.result()
            status = "ok" if result.ok else f"discarded ({result.error.kind})"
            print(f"  preview {label}: {status}")

    result = session.commit()
    print(f"  commit: {'ok' if result.ok else result.error}")


def main():
    """Run performance benchmarks."""
    print("=" * 60)
    print("Edit Pipeline Performance Demonstration")
    print("=" * 60)

    for size in (256, 1024, 2048):
        try:
            benchmark_tools(size)
        except KeyboardInterrupt:
            print("\n\nBenchmark interrupted by user")
            break

    demo_async_preview()


if __name__ == "__main__":
    main()
