#!/usr/bin/env python3
"""
Example script for mlx_thermal_reader

This script converts the sample MLX90640 data shipped in data/ and shows the
expected temperature image next to its per-pixel uncertainty.

Usage:
    python example.py

Requires matplotlib for the plots (pip install -e ".[plot]").
"""

from mlx_thermal_reader import mlx_load
import matplotlib.pyplot as plt

def main():
    """Basic example showing thermal data conversion and visualization."""

    print("🔍 MLX Thermal Reader - Basic Example")
    print("=" * 50)

    ee_file = "data/EEPROM-calibration-data.csv"
    raw_file = "data/raw-frame-data.csv"

    try:
        # Convert with emissivity ~ Uniform(0.93, 0.97) and modeled ADC quantization
        print(f"📁 Loading: {ee_file}, {raw_file}")
        frame = mlx_load(ee_file, raw_file, ensemble_size=500, seed=1)
        print("✅ Frames converted successfully!")

        pixel = frame[400]
        temp_min, temp_max = frame.get_temperature_range()
        print(f"\n🌡️ TEMPERATURE:")
        print(f"  Subpages: {frame.subpages}")
        print(f"  Ambient: {frame.ambient_temperature:.2f}°C, supply: {frame.supply_voltage:.3f} V")
        print(f"  Range: {temp_min:.1f}°C - {temp_max:.1f}°C")
        print(f"  Average: {frame.get_average_temperature():.1f}°C")
        print(f"  Pixel 400: {pixel.mean():.2f}°C ± {pixel.std():.3f} "
              f"(5%-95%: {pixel.quantile(0.05):.2f} - {pixel.quantile(0.95):.2f})")

        print(f"\n🖼️ DISPLAYING THERMAL IMAGE...")
        plt.figure(figsize=(12, 5))

        # Expected temperature
        plt.subplot(1, 2, 1)
        plt.imshow(frame.to_image(), cmap='hot')
        plt.colorbar(label='Temperature (°C)')
        plt.title('Expected temperature')
        plt.xlabel('Width (pixels)')
        plt.ylabel('Height (pixels)')

        # Standard deviation
        plt.subplot(1, 2, 2)
        plt.imshow(frame.uncertainty_image(), cmap='viridis')
        plt.colorbar(label='Standard deviation (°C)')
        plt.title('Uncertainty')
        plt.xlabel('Width (pixels)')
        plt.ylabel('Height (pixels)')

        plt.tight_layout()
        plt.show()

        print("✅ Example completed successfully!")

    except FileNotFoundError as e:
        print(f"❌ Error: {e}")
        print("Run the example from the repository root, next to the data/ directory.")
    except Exception as e:
        print(f"❌ Error: {e}")

if __name__ == "__main__":
    main()
