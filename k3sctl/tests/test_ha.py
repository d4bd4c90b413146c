import functools
import threading

import pytest
import yaml

from k3sctl.errors import ComponentError, HaBootstrapError, SSHConnectionError
from k3sctl.modules.k3s.component import CONFIG_FILE
from k3sctl.modules.k3s.ha import HaCluster, HaNode
from k3sctl.modules.k3s.kubeconfig import ClusterAuth
from k3sctl.modules.k3s.server import K3sServer
from k3sctl.modules.ssh import NodeAuth

HOSTS = ['10.0.0.10', '10.0.0.11', '10.0.0.12']


def nodes(hosts=HOSTS, **kwargs):
    return [HaNode(auth=NodeAuth(host=host, password='pw'), **kwargs) for host in hosts]


@pytest.fixture
def cluster(assets):
    def factory(connector, ha_nodes=None, server_factory=None, **kwargs):
        return HaCluster(
            ha_nodes or nodes(),
            config={'write-kubeconfig-mode': '0644'},
            connector=connector,
            server_factory=server_factory or functools.partial(K3sServer, assets=assets),
            **kwargs,
        )
    return factory


def written_config(conn):
    return yaml.safe_load(conn.files[CONFIG_FILE])


def test_create_bootstraps_first_then_joins(cluster, make_connector):
    connector = make_connector()

    result = cluster(connector).create()

    assert result.token == 'K10abc::server:secret'
    assert result.server == 'https://10.0.0.10:6443'
    assert ClusterAuth.from_kubeconfig(result.kubeconfig).server == 'https://10.0.0.10:6443'
    assert result.active == {host: True for host in HOSTS}
    assert [node.index for node in result.nodes] == [0, 1, 2]

    first = connector.conns['10.0.0.10']
    assert written_config(first) == {'write-kubeconfig-mode': '0644', 'cluster-init': True}
    for host in HOSTS[1:]:
        assert written_config(connector.conns[host]) == {
            'write-kubeconfig-mode': '0644',
            'token': 'K10abc::server:secret',
            'server': 'https://10.0.0.10:6443',
        }


def test_joiner_failure_is_isolated(cluster, make_connector):
    connector = make_connector(failures={'10.0.0.11': {'systemctl start k3s': 1}})

    with pytest.raises(HaBootstrapError) as excinfo:
        cluster(connector).create()

    result = excinfo.value.result
    assert result.token == 'K10abc::server:secret'
    assert result.active == {'10.0.0.10': True, '10.0.0.11': False, '10.0.0.12': True}
    assert [node.index for node in result.failed] == [1]
    assert isinstance(result.failed[0].error, ComponentError)
    assert "1 of 3 nodes failed" in str(excinfo.value)
    assert "node[1] 10.0.0.11" in str(excinfo.value)
    assert connector.conns['10.0.0.12'].ran('systemctl start k3s')


def test_first_node_failure_touches_no_other_node(cluster, make_connector):
    connector = make_connector(failures={'10.0.0.10': {'systemctl start k3s': 1}})

    with pytest.raises(ComponentError, match="10.0.0.10"):
        cluster(connector).create()

    assert connector.conns['10.0.0.11'].commands == []
    assert connector.conns['10.0.0.12'].commands == []


def test_bad_descriptor_fails_before_any_side_effect(cluster, make_connector):
    connector = make_connector(unreachable={'10.0.0.12'})

    with pytest.raises(SSHConnectionError):
        cluster(connector).create()

    assert all(conn.commands == [] for conn in connector.conns.values())


def test_joiners_run_concurrently(cluster, make_connector, assets):
    barrier = threading.Barrier(2)

    class BarrierServer(K3sServer):
        def preinstall(self, conn):
            if self.joining:
                # Both joiners must be in flight at once to pass
                barrier.wait(timeout=5)
            super().preinstall(conn)

    result = cluster(
        make_connector(),
        server_factory=functools.partial(BarrierServer, assets=assets),
    ).create()

    assert not result.failed


def test_joiner_configs_are_independent(cluster, make_connector):
    ha_nodes = nodes()
    ha_nodes[2].tls_san = 'lb.example.com'
    connector = make_connector()

    cluster(connector, ha_nodes=ha_nodes).create()

    assert written_config(connector.conns['10.0.0.12'])['tls-san'] == 'lb.example.com'
    assert 'tls-san' not in written_config(connector.conns['10.0.0.11'])
    assert 'tls-san' not in written_config(connector.conns['10.0.0.10'])


def test_per_node_bin_dir(cluster, make_connector):
    ha_nodes = nodes(bin_dir='/opt/bin')
    connector = make_connector()

    cluster(connector, ha_nodes=ha_nodes).create()

    assert '/opt/bin/k3s-install.sh' in connector.conns['10.0.0.11'].files


def test_single_node(cluster, make_connector):
    result = cluster(make_connector(), ha_nodes=nodes(HOSTS[:1])).create()
    assert result.active == {'10.0.0.10': True}


def test_empty_node_list():
    with pytest.raises(ValueError):
        HaCluster([])


def test_read_reports_each_node(cluster, make_connector):
    connector = make_connector(responses={'10.0.0.11': {'systemctl is-active': 'inactive\n'}})

    result = cluster(connector).read()

    assert result.active == {'10.0.0.10': True, '10.0.0.11': False, '10.0.0.12': True}
    assert not result.failed


def test_delete_uninstalls_every_node(cluster, make_connector):
    connector = make_connector(failures={'10.0.0.10': {'k3s-uninstall.sh': 1}})

    with pytest.raises(HaBootstrapError) as excinfo:
        cluster(connector).delete()

    assert [node.host for node in excinfo.value.result.failed] == ['10.0.0.10']
    for host in HOSTS[1:]:
        assert connector.conns[host].ran('sudo sh /usr/local/bin/k3s-uninstall.sh')
