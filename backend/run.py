#!/usr/bin/env python3
"""
Place Map Backend - Run Script
This script starts the FastAPI backend server
"""

import os
import sys
import subprocess
import socket
from pathlib import Path

from dotenv import dotenv_values

def print_colored(message, color="blue"):
    """Print colored output"""
    colors = {
        "red": "\033[91m",
        "green": "\033[92m",
        "yellow": "\033[93m",
        "blue": "\033[94m",
        "reset": "\033[0m"
    }
    print(f"{colors.get(color, '')}{message}{colors['reset']}")

def check_file_exists(filepath, error_message):
    """Check if a file exists"""
    if not Path(filepath).exists():
        print_colored(f"❌ Error: {error_message}", "red")
        sys.exit(1)

def check_port_open(host, port):
    """Check if a port is open"""
    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    sock.settimeout(2)
    result = sock.connect_ex((host, port))
    sock.close()
    return result == 0

def load_env():
    """Merge ../.env and .env (the same files the settings read), process env wins"""
    values = {}
    for path in ("../.env", ".env"):
        if Path(path).exists():
            values.update(dotenv_values(path))
    values.update(os.environ)
    return values

def main():
    print_colored("🚀 Starting Place Map Backend...", "blue")

    # Check if we're in the backend directory
    check_file_exists("placemap/main.py", "placemap/main.py not found. Please run this script from the backend directory.")

    env = load_env()
    storage_mode = env.get("STORAGE_MODE", "local")
    print_colored(f"💾 Storage mode: {storage_mode}", "blue")

    if storage_mode == "mongodb":
        # Check if MongoDB is running
        print_colored("🔍 Checking MongoDB connection...", "blue")
        if not check_port_open("localhost", 27017):
            print_colored("⚠️  Warning: MongoDB doesn't appear to be running on localhost:27017", "yellow")
            print("Please start MongoDB first:")
            print("  - Using Docker: docker run -d -p 27017:27017 mongo:7.0")
            print("  - Using local installation: mongod --dbpath /path/to/data")
            print("Or set STORAGE_MODE=local to use the JSON file store.")
            print()
            response = input("Continue anyway? (y/N): ").strip().lower()
            if response != 'y':
                sys.exit(1)

    # Start the server
    print_colored("✅ All checks passed!", "green")
    print_colored("🌐 Starting Uvicorn server...", "blue")
    print("📍 Backend will be available at: http://localhost:8000")
    print("📍 API Health check: http://localhost:8000/health")
    print("📍 API Documentation: http://localhost:8000/docs")
    print()
    print("Press Ctrl+C to stop the server")
    print()

    # Run uvicorn with auto-reload for development
    try:
        subprocess.run([
            sys.executable, "-m", "uvicorn",
            "placemap.main:app",
            "--reload",
            "--host", "0.0.0.0",
            "--port", "8000"
        ], check=True)
    except KeyboardInterrupt:
        print_colored("\n👋 Backend server stopped.", "yellow")
    except subprocess.CalledProcessError as e:
        print_colored(f"\n❌ Error starting server: {e}", "red")
        sys.exit(1)

if __name__ == "__main__":
    main()
