"""Core grading algorithms shared by the CPU and OpenGL renderers."""
