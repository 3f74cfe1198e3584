"""bsonbench: cross-version throughput benchmarks for BSON libraries.

Each benchmark runs in its own worker process against one installed
version of the library under test, so several versions of the same
package can be compared in a single suite.
"""

__version__ = "0.3.0"
