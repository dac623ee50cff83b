"""Client library for resources managed by [shape trees](https://shapetrees.org/TR/specification/)."""
