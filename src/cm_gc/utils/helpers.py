import os
from typing import NamedTuple

from kubernetes import client, config
from kubernetes.config.config_exception import ConfigException
from loguru import logger


class KubeClients(NamedTuple):
    apps_v1: client.AppsV1Api
    core_v1: client.CoreV1Api
    custom_objects: client.CustomObjectsApi


def load_kube_configuration():
    """
    Charge la configuration Kubernetes:
    in-cluster (ServiceAccount) d'abord, puis KUBECONFIG ou ~/.kube/config.
    """
    try:
        config.load_incluster_config()  # For running inside a cluster
        logger.info("Kubernetes in cluster configuration loaded.")
        return
    except ConfigException:
        logger.debug("Not running in a cluster, falling back to kubeconfig")

    kubeconfig = os.getenv("KUBECONFIG") or None
    config.load_kube_config(config_file=kubeconfig)  # For local development
    logger.info(f"Kubernetes local configuration loaded ({kubeconfig or '~/.kube/config'}).")


def initialize_kubernetes() -> KubeClients:
    """Initialize Kubernetes clients based on environment"""
    load_kube_configuration()
    clients = KubeClients(
        apps_v1=client.AppsV1Api(),
        core_v1=client.CoreV1Api(),
        custom_objects=client.CustomObjectsApi(),
    )
    logger.info("Kubernetes API clients initialized.")
    return clients
