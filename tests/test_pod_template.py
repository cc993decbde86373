"""
Tests for member pod manifest construction.
"""
from conftest import make_cluster
from couchdb_operator.models.cluster import EnvVar, EnvVarSource, KeySelector
from couchdb_operator.services.pod_template import build_member_pod


def build(cluster):
    return build_member_pod(cluster, "nicolai86/couchdb", "2.1.0")


def container_of(manifest):
    containers = manifest["spec"]["containers"]
    assert len(containers) == 1
    return containers[0]


def test_image_from_cluster_spec():
    cluster = make_cluster().model_copy(update={"base_image": "couchdb", "version": "2.3.1"})

    assert container_of(build(cluster))["image"] == "couchdb:2.3.1"


def test_default_image_when_spec_is_blank():
    cluster = make_cluster().model_copy(update={"base_image": "", "version": ""})

    assert container_of(build(cluster))["image"] == "nicolai86/couchdb:2.1.0"


def test_ports_and_probes():
    container = container_of(build(make_cluster()))

    ports = {port["name"]: port["containerPort"] for port in container["ports"]}
    assert ports == {"standalone": 5984, "node-local": 5986, "epmd": 4369, "inet": 9100}
    assert container["livenessProbe"]["exec"]["command"] == ["pidof", "beam.smp"]
    assert container["readinessProbe"]["httpGet"]["port"] == "standalone"


def test_user_env_kept_and_node_name_injected():
    env = [
        EnvVar(name="COUCHDB_USER", value="root"),
        EnvVar(
            name="COUCHDB_PASSWORD",
            value_from=EnvVarSource(secret_key_ref=KeySelector(name="auth", key="password")),
        ),
    ]

    container = container_of(build(make_cluster(env=env)))

    assert container["env"] == [
        {"name": "COUCHDB_USER", "value": "root"},
        {
            "name": "COUCHDB_PASSWORD",
            "valueFrom": {"secretKeyRef": {"name": "auth", "key": "password", "optional": False}},
        },
        {"name": "NODENAME", "valueFrom": {"fieldRef": {"fieldPath": "status.podIP"}}},
    ]


def test_no_scheduling_hints_by_default():
    spec = build(make_cluster())["spec"]

    assert "affinity" not in spec
    assert "nodeSelector" not in spec
    assert spec["subdomain"] == "demo"
    assert spec["restartPolicy"] == "Always"


def test_node_selector_and_anti_affinity():
    cluster = make_cluster(name="orders", node_selector={"disk": "ssd"}, anti_affinity=True)

    spec = build(cluster)["spec"]

    assert spec["nodeSelector"] == {"disk": "ssd"}
    term = spec["affinity"]["podAntiAffinity"]["requiredDuringSchedulingIgnoredDuringExecution"][0]
    assert term["labelSelector"] == {"matchLabels": {"cluster": "orders"}}
    assert term["topologyKey"] == "kubernetes.io/hostname"


def test_each_manifest_gets_a_fresh_name():
    cluster = make_cluster(name="orders")

    names = {build(cluster)["metadata"]["name"] for _ in range(5)}

    assert len(names) == 5
    assert all(name.startswith("couchdb-orders-") for name in names)
